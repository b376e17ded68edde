"""
OpenCV camera source for USB webcams addressed by device index.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import cv2

from inference.runtime import initialize_runtime
from models.errors import DeviceUnavailable, FrameReadFailure
from models.frame import FrameData
from .base import CaptureConfig, ObservationSource

MAX_READ_RECOVERIES = 3


class OpenCVCamera(ObservationSource):
    """
    Wraps cv2.VideoCapture and hands out FrameData objects.

    Opening retries with exponential backoff. A failed read reinitializes
    the device for up to MAX_READ_RECOVERIES consecutive failures.

    Example:
        with OpenCVCamera(CaptureConfig(device_index=0)) as camera:
            frame_data = camera.read()
    """

    def __init__(self, config: CaptureConfig, sleep=time.sleep):
        super().__init__(config)
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0
        self._sleep = sleep

    def open(self) -> None:
        if self._is_open:
            return

        initialize_runtime()
        self._initialize(retry_count=0)
        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"Camera opened: device={self.device_index}, resolution={self._config.resolution}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize or reinitialize the capture device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying camera initialization (attempt {retry_count + 1}/"
                f"{self._config.max_retries}) after {wait_time}s"
            )
            self._sleep(wait_time)

        self._cap = cv2.VideoCapture(self.device_index)

        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            if retry_count < self._config.max_retries - 1:
                logging.warning(f"Failed to open camera device {self.device_index}, retrying...")
                return self._initialize(retry_count + 1)
            raise DeviceUnavailable(
                f"Failed to open camera device {self.device_index} after "
                f"{self._config.max_retries} attempts"
            )

        if self._config.resolution:
            w, h = self._config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._config.buffer_size)

        actual_w = self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        actual_h = self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        logging.info(f"Camera actual settings - Resolution: ({actual_w}x{actual_h})")

        if self._config.warmup_s > 0:
            self._sleep(self._config.warmup_s)
        self._consecutive_failures = 0

    def read(self) -> FrameData:
        if not self._is_open:
            raise FrameReadFailure("Camera is not open")

        if self._cap is None or not self._cap.isOpened():
            logging.warning("Capture not opened, attempting to reinitialize")
            self._initialize()

        ret, frame = self._cap.read()
        if not ret or frame is None or frame.size == 0:
            self._consecutive_failures += 1
            if self._consecutive_failures > MAX_READ_RECOVERIES:
                raise DeviceUnavailable(
                    f"Too many consecutive read failures on device {self.device_index}"
                )
            failures = self._consecutive_failures
            logging.warning(f"Failed to read frame (failures: {failures}), reinitializing...")
            self._initialize()
            self._consecutive_failures = failures
            raise FrameReadFailure(f"Frame read failed on device {self.device_index}")

        self._consecutive_failures = 0
        self._frame_index += 1
        return FrameData.from_numpy(frame, timestamp=time.time(), frame_index=self._frame_index)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logging.info(f"Camera released: device={self.device_index}")
        self._is_open = False

    def get_device_info(self) -> Dict[str, Any]:
        if self._cap is None or not self._cap.isOpened():
            return {}
        return {
            "width": int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
        }
