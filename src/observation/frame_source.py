"""
Background capture loop feeding a single-slot latest-frame channel.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

from models.errors import DeviceUnavailable, FrameReadFailure
from models.frame import FrameData
from runtime.channels import LatestValue
from .base import CaptureConfig, ObservationSource
from .opencv_source import OpenCVCamera

CameraFactory = Callable[[CaptureConfig], ObservationSource]
FrameCallback = Callable[[FrameData], None]
ErrorCallback = Callable[[str], None]


class FrameSource:
    """
    Owns the capture device and produces frames at a fixed cadence.

    Frames are delivered at-most-current: each capture overwrites the
    previous one in the latest-frame slot, and on_frame is called with it.
    A failed read is skipped; losing the device reports on_error once and
    ends the loop until start() is called again.
    """

    def __init__(self, config: CaptureConfig, camera_factory: CameraFactory = OpenCVCamera):
        self._config = config
        self._camera_factory = camera_factory
        self._camera: Optional[ObservationSource] = None
        self._latest: LatestValue[FrameData] = LatestValue()
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()
        self._frames_captured = 0
        self._frames_skipped = 0

    @property
    def frames_captured(self) -> int:
        with self._stats_lock:
            return self._frames_captured

    @property
    def frames_skipped(self) -> int:
        with self._stats_lock:
            return self._frames_skipped

    def get_stats(self) -> Dict[str, int]:
        """Capture counters read together under one lock."""
        with self._stats_lock:
            return {
                "frames_captured": self._frames_captured,
                "frames_skipped": self._frames_skipped,
            }

    def open(self, device_index: Optional[int] = None) -> None:
        """
        Acquire the capture device.

        Raises:
            DeviceUnavailable: If the device cannot be opened.
        """
        with self._lock:
            if self._camera is not None and self._camera.is_open:
                return
            if device_index is not None:
                self._config.device_index = device_index
            camera = self._camera_factory(self._config)
            try:
                camera.open()
            except DeviceUnavailable:
                camera.close()
                raise
            self._camera = camera

    def start(
        self,
        target_interval_ms: int,
        on_frame: Optional[FrameCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Begin capturing on a background thread. No-op if already running."""
        if self.is_running():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._capture_loop,
            args=(self._stop_event, target_interval_ms / 1000.0, on_frame, on_error),
            name="frame-source",
            daemon=True,
        )
        self._thread.start()
        logging.info(f"Camera feed started (interval={target_interval_ms}ms)")

    def _capture_loop(
        self,
        stop_event: threading.Event,
        interval_s: float,
        on_frame: Optional[FrameCallback],
        on_error: Optional[ErrorCallback],
    ) -> None:
        try:
            self.open()
        except DeviceUnavailable as e:
            logging.error(f"Failed to open camera: {e}")
            self._report_error(on_error, str(e))
            return

        next_due = time.monotonic()
        while not stop_event.is_set():
            camera = self._camera
            if camera is None:
                break
            try:
                frame = camera.read()
            except FrameReadFailure as e:
                with self._stats_lock:
                    self._frames_skipped += 1
                logging.debug(f"Frame skipped: {e}")
            except DeviceUnavailable as e:
                logging.error(f"Camera lost: {e}")
                self._release()
                self._report_error(on_error, str(e))
                return
            else:
                with self._stats_lock:
                    self._frames_captured += 1
                self._latest.put(frame)
                if on_frame is not None:
                    try:
                        on_frame(frame)
                    except Exception as e:
                        logging.warning(f"Frame callback error: {e}")

            next_due += interval_s
            now = time.monotonic()
            if next_due < now:
                next_due = now
            stop_event.wait(next_due - now)

        # stop() may have run while open() was still in progress.
        if self._stop_event is stop_event:
            self._release()

    @staticmethod
    def _report_error(on_error: Optional[ErrorCallback], message: str) -> None:
        if on_error is None:
            return
        try:
            on_error(message)
        except Exception as e:
            logging.warning(f"Camera error callback failed: {e}")

    def latest_frame(self) -> Optional[FrameData]:
        """Most recent captured frame, or None if nothing has been captured."""
        return self._latest.get()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def stop(self, timeout: float = 1.0) -> None:
        """Stop capturing and release the device. Idempotent."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        self._release()
        self._latest.clear()

    def _release(self) -> None:
        with self._lock:
            camera, self._camera = self._camera, None
        if camera is not None:
            camera.close()
            logging.info("Camera feed stopped")

    def probe(self, device_index: Optional[int] = None) -> bool:
        """Check whether a device can be opened, releasing it straight away."""
        if self._camera is not None and self._camera.is_open:
            return True
        config = CaptureConfig(
            device_index=self._config.device_index if device_index is None else device_index,
            resolution=self._config.resolution,
            max_retries=1,
            buffer_size=self._config.buffer_size,
            warmup_s=0.0,
        )
        camera = self._camera_factory(config)
        try:
            camera.open()
            return True
        except DeviceUnavailable:
            return False
        finally:
            camera.close()
