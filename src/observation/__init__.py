"""
Observation layer: camera devices and the background capture loop.

Each device implements the ObservationSource interface and returns
FrameData objects; FrameSource runs the capture loop on top of one.
"""

from .base import ObservationSource, CaptureConfig
from .opencv_source import OpenCVCamera
from .frame_source import FrameSource

__all__ = [
    "ObservationSource",
    "CaptureConfig",
    "OpenCVCamera",
    "FrameSource",
]
