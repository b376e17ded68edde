"""
Greedy non-maximum suppression over pixel-space boxes.
"""

from __future__ import annotations

from typing import List, Sequence

from models.detection import BoundingBox


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection-over-union of two boxes; 0.0 when the union is empty."""
    inter_w = min(a.x2, b.x2) - max(a.x, b.x)
    inter_h = min(a.y2, b.y2) - max(a.y, b.y)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    intersection = inter_w * inter_h
    union = a.area + b.area - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def non_max_suppression(
    boxes: Sequence[BoundingBox],
    scores: Sequence[float],
    iou_threshold: float,
) -> List[int]:
    """
    Select boxes greedily by descending score.

    A box is kept only if its IoU with every already-kept box is strictly
    below iou_threshold, so every kept pair satisfies IoU <= iou_threshold.
    Equal scores keep their input order.

    Args:
        boxes: Candidate boxes.
        scores: Confidence per box (same length as boxes).
        iou_threshold: Overlap at or above which a lower-scored box is dropped.

    Returns:
        Indices into boxes of the kept candidates, highest score first.
    """
    if len(boxes) != len(scores):
        raise ValueError(f"boxes ({len(boxes)}) and scores ({len(scores)}) differ in length")

    order = sorted(range(len(boxes)), key=lambda i: scores[i], reverse=True)
    keep: List[int] = []
    for idx in order:
        candidate = boxes[idx]
        if all(iou(candidate, boxes[k]) < iou_threshold for k in keep):
            keep.append(idx)
    return keep
