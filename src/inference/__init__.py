"""
Model runtime, raw-output decoding and NMS.
"""

from .backend import InferenceBackend, OnnxDnnBackend, OnnxDnnConfig
from .decode import decode_output, normalize_output, clamp_confidence, best_detection
from .nms import iou, non_max_suppression
from .runtime import initialize_runtime

__all__ = [
    "InferenceBackend",
    "OnnxDnnBackend",
    "OnnxDnnConfig",
    "decode_output",
    "normalize_output",
    "clamp_confidence",
    "best_detection",
    "iou",
    "non_max_suppression",
    "initialize_runtime",
]
