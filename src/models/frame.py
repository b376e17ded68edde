"""
FrameData model for captured camera frames.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    A single captured frame and its capture metadata.

    Frames are produced by the capture loop and handed to the detector for
    the duration of one inference call only.

    Attributes:
        frame: The raw image as a numpy array (BGR format).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the device was opened.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: Optional[float] = None,
        frame_index: int = 0,
    ) -> "FrameData":
        """Create FrameData from a numpy array, deriving width and height."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=time.time() if timestamp is None else timestamp,
            frame_index=frame_index,
        )

    @property
    def is_empty(self) -> bool:
        return self.frame is None or self.frame.size == 0

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)
