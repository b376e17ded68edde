"""
Waste item detection.

Wraps the inference backend and decoder behind a single Detector object.
"""

from .detector import Detector, NullDetector

__all__ = ['Detector', 'NullDetector']
