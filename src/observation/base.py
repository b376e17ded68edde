"""
ObservationSource interface for capture devices.

The capture loop (observation.frame_source.FrameSource) works with any
source implementing this contract, so tests can substitute a scripted
device for the real camera.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from models.frame import FrameData


@dataclass
class CaptureConfig:
    """
    Configuration for a capture device.

    Attributes:
        device_index: Camera index passed to the capture backend.
        resolution: Requested (width, height). None = device default.
        max_retries: Attempts to open the device before giving up.
        buffer_size: Capture buffer size (1 keeps the feed current).
        warmup_s: Pause after opening before the first read.
    """
    device_index: int = 0
    resolution: Optional[Tuple[int, int]] = (640, 480)
    max_retries: int = 3
    buffer_size: int = 1
    warmup_s: float = 0.5


class ObservationSource(ABC):
    """
    Abstract base class for capture devices.

    Lifecycle:
        1. Create instance with config
        2. Call open() to acquire the device
        3. Call read() repeatedly to get frames
        4. Call close() to release the device

    Can also be used as a context manager:
        with OpenCVCamera(config) as camera:
            frame_data = camera.read()
    """

    def __init__(self, config: CaptureConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def device_index(self) -> int:
        return self._config.device_index

    @property
    def is_open(self) -> bool:
        """Whether the device is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the capture device.

        Raises:
            DeviceUnavailable: If the device cannot be opened.
        """
        pass

    @abstractmethod
    def read(self) -> FrameData:
        """
        Read the next frame.

        Raises:
            FrameReadFailure: If this read failed but the device may recover.
            DeviceUnavailable: If the device was lost and could not be reacquired.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release the device.

        Safe to call multiple times.
        """
        pass

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
