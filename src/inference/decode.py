"""
Decode raw anchor-free YOLO output into pixel-space detections.

The model emits a tensor shaped [1, channels, candidates] (or the
transposed [1, candidates, channels]). Channels 0..3 hold the predicted
box centre and size in model-input pixels; channels 4..end hold one score
per class.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from models.detection import BoundingBox, Detection
from .nms import non_max_suppression

CLASS_OFFSET = 4
UNKNOWN_LABEL = "unknown"


def normalize_output(raw: np.ndarray) -> np.ndarray:
    """
    Return the output as a float32 (channels, candidates) matrix.

    The channel axis is taken to be the smaller of the two trailing
    dimensions, since detection heads emit far more candidates than
    channels (e.g. 5 x 8400).
    """
    arr = np.asarray(raw, dtype=np.float32)
    if arr.ndim == 3:
        arr = arr[0]
    elif arr.ndim != 2:
        raise ValueError(f"Unexpected model output shape {tuple(np.shape(raw))}")

    if arr.shape[0] > arr.shape[1]:
        arr = arr.T
    return arr


def clamp_confidence(scores: np.ndarray) -> np.ndarray:
    """Clamp raw scores into [0, 1]; NaN becomes 0. Not a calibration."""
    scores = np.asarray(scores, dtype=np.float32)
    return np.clip(np.nan_to_num(scores, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)


def log_sample_rows(data: np.ndarray) -> None:
    """Log the raw score range and a few sample candidates."""
    channels, candidates = data.shape
    finite = data[np.isfinite(data)]
    if finite.size:
        logging.debug(f"Debug raw output min={finite.min():.4f} max={finite.max():.4f}")
    logging.debug("Debug sample of raw model rows (x, y, w, h, score...):")

    if candidates <= 0:
        return
    for index in (0, candidates // 10, candidates // 5, candidates // 2, candidates - 1):
        row = (
            f"  row {index}: x={data[0, index]:.4f} y={data[1, index]:.4f} "
            f"w={data[2, index]:.4f} h={data[3, index]:.4f}"
        )
        for c in range(min(channels - CLASS_OFFSET, 3)):
            row += f" class{c}={data[CLASS_OFFSET + c, index]:.4f}"
        logging.debug(row)


def decode_output(
    raw: np.ndarray,
    frame_width: int,
    frame_height: int,
    input_size: Tuple[int, int],
    labels: Sequence[str],
    conf_threshold: float,
    iou_threshold: float,
    debug: bool = False,
    log_samples: bool = False,
) -> List[Detection]:
    """
    Decode one forward pass into detections.

    Args:
        raw: Model output tensor.
        frame_width: Width of the frame the blob was built from.
        frame_height: Height of the frame the blob was built from.
        input_size: Model input (width, height).
        labels: Class labels indexed by class id.
        conf_threshold: Minimum clamped score to keep a candidate.
        iou_threshold: NMS overlap threshold.
        debug: Log score diagnostics when nothing clears the threshold.
        log_samples: Log raw sample rows (callers enable this once).

    Returns:
        Detections kept by NMS, highest confidence first.
    """
    data = normalize_output(raw)
    channels, candidates = data.shape
    if channels <= CLASS_OFFSET or candidates == 0:
        return []

    if log_samples:
        log_sample_rows(data)

    cx, cy, w, h = data[0], data[1], data[2], data[3]
    class_scores = data[CLASS_OFFSET:]

    ranked = np.where(np.isnan(class_scores), -np.inf, class_scores)
    class_ids = np.argmax(ranked, axis=0)
    best_raw = class_scores[class_ids, np.arange(candidates)]
    confidences = clamp_confidence(best_raw)

    mask = confidences >= conf_threshold
    mask &= np.isfinite(cx) & np.isfinite(cy) & np.isfinite(w) & np.isfinite(h)

    if debug and not mask.any():
        raw_ok = best_raw[~np.isnan(best_raw)]
        best_seen = float(raw_ok.max()) if raw_ok.size else float("nan")
        logging.debug(
            f"Debug: no detection cleared threshold {conf_threshold:.2f} | "
            f"best raw {best_seen:.3f} | best clamped {float(confidences.max()):.3f}"
        )

    input_w, input_h = input_size
    x_factor = frame_width / input_w
    y_factor = frame_height / input_h

    boxes: List[BoundingBox] = []
    scores: List[float] = []
    ids: List[int] = []
    for i in np.flatnonzero(mask):
        left = int((cx[i] - w[i] / 2) * x_factor)
        top = int((cy[i] - h[i] / 2) * y_factor)
        box_w = int(w[i] * x_factor)
        box_h = int(h[i] * y_factor)

        left = max(0, left)
        top = max(0, top)
        box_w = min(box_w, frame_width - left)
        box_h = min(box_h, frame_height - top)
        if box_w <= 0 or box_h <= 0:
            continue

        boxes.append(BoundingBox(left, top, box_w, box_h))
        scores.append(float(confidences[i]))
        ids.append(int(class_ids[i]))

    if not boxes:
        return []

    detections = []
    for idx in non_max_suppression(boxes, scores, iou_threshold):
        class_id = ids[idx]
        label = labels[class_id] if class_id < len(labels) else UNKNOWN_LABEL
        detections.append(Detection(label=label, confidence=scores[idx], box=boxes[idx], class_id=class_id))
    return detections


def best_detection(detections: Sequence[Detection], threshold: float) -> Optional[Detection]:
    """Highest-confidence detection at or above threshold; ties go to the first seen."""
    best = None
    for detection in detections:
        if not detection.is_confident(threshold):
            continue
        if best is None or detection.confidence > best.confidence:
            best = detection
    return best
