"""
Waste item detector: model lifecycle, decoding and best-result selection.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, List, Optional

import numpy as np

from inference.backend import InferenceBackend, OnnxDnnBackend, OnnxDnnConfig
from inference.decode import best_detection, decode_output
from models.config import DetectorConfig
from models.detection import Detection
from models.errors import InferenceFailure
from models.frame import FrameData

DEBUG_ENV_VAR = "KIOSK_DEBUG"

BackendFactory = Callable[[OnnxDnnConfig], InferenceBackend]


class Detector:
    """
    Loads a model once and turns frames into detections.

    Example:
        detector = Detector(DetectorConfig())
        detector.load("model/YOLO/best.onnx")
        best = detector.detect_best(frame_data)
    """

    available = True

    def __init__(self, cfg: DetectorConfig, backend_factory: BackendFactory = OnnxDnnBackend):
        self.cfg = cfg
        self._backend_factory = backend_factory
        self._backend: Optional[InferenceBackend] = None
        self._lock = threading.Lock()
        self._confidence_threshold = 0.0
        self.confidence_threshold = cfg.conf_threshold
        self.debug = bool(cfg.debug) or os.environ.get(DEBUG_ENV_VAR) == "1"
        self._logged_sample = False

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    @confidence_threshold.setter
    def confidence_threshold(self, value: float) -> None:
        self._confidence_threshold = max(0.0, min(1.0, float(value)))

    @property
    def is_loaded(self) -> bool:
        return self._backend is not None

    def load(self, model_path: Optional[str] = None) -> None:
        """
        Load the model.

        Raises:
            ModelLoadError: If the file is missing or cannot be parsed.
        """
        path = model_path or self.cfg.model_path
        backend = self._backend_factory(
            OnnxDnnConfig(model_path=path, input_size=tuple(self.cfg.input_size))
        )
        with self._lock:
            if self._backend is not None:
                self._backend.close()
            self._backend = backend
        logging.info(
            f"Detector ready: model={path}, labels={list(self.cfg.labels)}, "
            f"conf={self.confidence_threshold}, nms={self.cfg.iou_threshold}, debug={self.debug}"
        )

    def infer(self, frame: FrameData) -> np.ndarray:
        """Run one forward pass on the frame."""
        backend = self._backend
        if backend is None:
            raise InferenceFailure("Model not loaded")
        return backend.infer(frame.frame)

    def decode(self, raw: np.ndarray, frame_width: int, frame_height: int) -> List[Detection]:
        """Decode a raw output tensor, apply the confidence threshold and NMS."""
        log_samples = self.debug and not self._logged_sample
        if log_samples:
            self._logged_sample = True
        return decode_output(
            raw,
            frame_width,
            frame_height,
            input_size=tuple(self.cfg.input_size),
            labels=self.cfg.labels,
            conf_threshold=self.confidence_threshold,
            iou_threshold=self.cfg.iou_threshold,
            debug=self.debug,
            log_samples=log_samples,
        )

    def get_best(self, detections: List[Detection]) -> Optional[Detection]:
        return best_detection(detections, self.confidence_threshold)

    def detect_best(self, frame: FrameData) -> Optional[Detection]:
        """infer, decode and get_best for one frame."""
        if frame is None or frame.is_empty:
            return None
        raw = self.infer(frame)
        detections = self.decode(raw, frame.width, frame.height)
        if not detections:
            return None
        return self.get_best(detections)

    def close(self) -> None:
        """Release the model. Safe to call multiple times."""
        with self._lock:
            backend, self._backend = self._backend, None
        if backend is not None:
            backend.close()
            logging.info("Detector closed")


class NullDetector:
    """Stand-in used when the model cannot be loaded; never detects anything."""

    available = False
    is_loaded = False

    def __init__(self, reason: str = "model unavailable"):
        self.reason = reason
        self.confidence_threshold = 1.0

    def detect_best(self, frame: FrameData) -> Optional[Detection]:
        return None

    def get_best(self, detections: List[Detection]) -> Optional[Detection]:
        return None

    def close(self) -> None:
        pass
