"""
Presentation states driven by the detection loop.
"""

from __future__ import annotations

from enum import Enum


class DetectionState(str, Enum):
    """Detection loop states."""
    IDLE = "idle"
    SCANNING = "scanning"
    CLASSIFIED = "classified"
    CONFIRMING = "confirming"
