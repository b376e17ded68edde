"""
Inference backend interface and the OpenCV DNN (ONNX) implementation.

Backends return the raw output tensor; decoding into detections happens in
inference.decode so it can be tested without a model.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol, Tuple

import cv2
import numpy as np

from models.errors import InferenceFailure, ModelLoadError
from .runtime import initialize_runtime


class InferenceBackend(Protocol):
    input_size: Tuple[int, int]

    def infer(self, image: np.ndarray) -> np.ndarray:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class OnnxDnnConfig:
    model_path: str
    input_size: Tuple[int, int] = (640, 640)
    scale: float = 1.0 / 255.0
    swap_rb: bool = True


class OnnxDnnBackend:
    """Runs an exported YOLO ONNX model through cv2.dnn."""

    def __init__(self, cfg: OnnxDnnConfig):
        self.cfg = cfg
        self.input_size = tuple(cfg.input_size)
        self._logged_output_shape = False

        if not os.path.exists(cfg.model_path):
            raise ModelLoadError(f"Model file not found at: {os.path.abspath(cfg.model_path)}")

        initialize_runtime()
        try:
            self._net = cv2.dnn.readNetFromONNX(os.path.abspath(cfg.model_path))
        except cv2.error as e:
            raise ModelLoadError(f"Failed to parse model {cfg.model_path}: {e}") from e
        if self._net is None or self._net.empty():
            raise ModelLoadError(f"Model {cfg.model_path} loaded as an empty network")

        logging.info(f"Loaded ONNX model: {cfg.model_path} (input={self.input_size})")

    def infer(self, image: np.ndarray) -> np.ndarray:
        if self._net is None:
            raise InferenceFailure("Model has been closed")

        blob = cv2.dnn.blobFromImage(
            image,
            self.cfg.scale,
            self.input_size,
            (0, 0, 0),
            swapRB=self.cfg.swap_rb,
            crop=False,
        )
        try:
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise InferenceFailure(f"Forward pass failed: {e}") from e

        if not self._logged_output_shape:
            logging.info(f"YOLO output shape: {list(output.shape)}")
            self._logged_output_shape = True
        return output

    def close(self) -> None:
        self._net = None
