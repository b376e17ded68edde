"""
Typed models for the waste sorting kiosk.

These are shared by the capture, detection and presentation-state layers.
"""

from .frame import FrameData
from .detection import Detection, BoundingBox
from .category import WasteCategory
from .state import DetectionState
from .errors import (
    KioskError,
    DeviceUnavailable,
    FrameReadFailure,
    ModelLoadError,
    InferenceFailure,
    MismatchedDisposal,
)
from .config import Config, CameraConfig, DetectorConfig, TimingConfig

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "BoundingBox",
    # Categories / state
    "WasteCategory",
    "DetectionState",
    # Errors
    "KioskError",
    "DeviceUnavailable",
    "FrameReadFailure",
    "ModelLoadError",
    "InferenceFailure",
    "MismatchedDisposal",
    # Config
    "Config",
    "CameraConfig",
    "DetectorConfig",
    "TimingConfig",
]
