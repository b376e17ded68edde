from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from detection.detector import Detector, NullDetector
from inference.runtime import initialize_runtime
from models.config import Config
from models.errors import ModelLoadError
from observation.base import CaptureConfig, ObservationSource
from observation.frame_source import FrameSource
from observation.opencv_source import OpenCVCamera
from .controller import DetectionLoopController
from .sink import PresentationSink
from .timers import TimerService

CAMERA_ERROR_MESSAGE = (
    "Camera not authorized or disconnected.\n"
    "Check System Settings > Privacy > Camera"
)


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    frame_source: FrameSource
    detector: Any
    timers: TimerService
    sink: PresentationSink
    controller: DetectionLoopController

    # Observability
    system_stats: Dict[str, Any] = field(default_factory=dict)
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _is_shut_down: bool = False

    def start_feed(self) -> None:
        """Start (or retry) the live camera feed."""
        self.frame_source.start(
            self.config.camera.capture_interval_ms,
            on_frame=self._on_frame,
            on_error=self._on_camera_error,
        )

    def stop_feed(self) -> None:
        self.frame_source.stop()

    def _on_frame(self, frame) -> None:
        self.system_stats["last_frame_ts"] = frame.timestamp
        self.system_stats.update(self.frame_source.get_stats())
        self.sink.on_frame_ready(frame)

    def _on_camera_error(self, message: str) -> None:
        self.system_stats["camera_error"] = message
        logging.error(f"Camera error - {message}")
        self.sink.on_camera_error(CAMERA_ERROR_MESSAGE)

    def get_system_stats_copy(self) -> Dict[str, Any]:
        stats = dict(self.system_stats)
        stats["state"] = self.controller.state.value
        stats["detector_available"] = getattr(self.detector, "available", False)
        stats["skipped_ticks"] = self.controller.skipped_ticks
        return stats

    def shutdown(self) -> None:
        """Stop everything and release the camera and model exactly once."""
        with self._shutdown_lock:
            if self._is_shut_down:
                return
            self._is_shut_down = True
        self.controller.stop()
        self.timers.shutdown()
        self.frame_source.stop()
        self.detector.close()
        logging.info("Runtime shut down")


def build_context(
    config: Config,
    sink: PresentationSink,
    camera_factory: Callable[[CaptureConfig], ObservationSource] = OpenCVCamera,
    detector_factory: Callable[..., Any] = Detector,
    timers: Optional[TimerService] = None,
) -> RuntimeContext:
    """
    Wire the frame source, detector, timers and controller from config.

    A model that fails to load degrades detection to a NullDetector; the rest
    of the kiosk keeps running.
    """
    initialize_runtime(config.detection.num_threads)

    cam = config.camera
    frame_source = FrameSource(
        CaptureConfig(
            device_index=cam.device_index,
            resolution=tuple(cam.resolution) if cam.resolution else None,
            max_retries=cam.max_retries,
            buffer_size=cam.buffer_size,
        ),
        camera_factory=camera_factory,
    )

    detector = detector_factory(config.detection)
    try:
        detector.load(config.detection.model_path)
    except ModelLoadError as e:
        logging.error(f"Failed to load detection model: {e}")
        detector = NullDetector(reason=str(e))

    timers = timers or TimerService()
    controller = DetectionLoopController(
        frames=frame_source,
        detector=detector,
        timers=timers,
        sink=sink,
        timing=config.timing,
        min_confidence=config.detection.min_confidence,
    )
    return RuntimeContext(
        config=config,
        frame_source=frame_source,
        detector=detector,
        timers=timers,
        sink=sink,
        controller=controller,
    )
