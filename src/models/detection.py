"""
Detection models for decoded model output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in frame pixel coordinates.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Box width in pixels.
        height: Box height in pixels.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x2, self.y2)

    def within(self, frame_width: int, frame_height: int) -> bool:
        """True if the box lies inside [0, frame_width) x [0, frame_height)."""
        return (
            self.x >= 0 and self.y >= 0
            and self.width > 0 and self.height > 0
            and self.x2 <= frame_width and self.y2 <= frame_height
        )


@dataclass(frozen=True)
class Detection:
    """
    A single detection surviving threshold filtering and NMS.

    Attributes:
        label: Class label from the model's label list ("unknown" if out of range).
        confidence: Clamped score in [0, 1].
        box: Bounding box in frame pixel coordinates.
        class_id: Arg-max class index from the raw output.
    """
    label: str
    confidence: float
    box: BoundingBox
    class_id: Optional[int] = None

    @property
    def confidence_percentage(self) -> str:
        return f"{self.confidence * 100:.0f}%"

    def is_confident(self, threshold: float) -> bool:
        return self.confidence >= threshold

    @property
    def bin_instruction(self) -> str:
        from classification.mapper import map_label_to_category

        return f"Place in {map_label_to_category(self.label).bin_name} bin."

    def status_message(self, threshold: float) -> str:
        """Human-readable status line for this detection at the given threshold."""
        if not self.is_confident(threshold):
            return f"Low confidence ({self.confidence_percentage}). Please try again."
        label = self.label[:1].upper() + self.label[1:] if self.label else self.label
        return f"{label} detected ({self.confidence_percentage}). {self.bin_instruction}"

    def __str__(self) -> str:
        return f"Detection(label='{self.label}', confidence={self.confidence:.2f})"
