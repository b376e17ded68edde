"""
Error taxonomy for the kiosk pipeline.

None of these are meant to terminate the process: callers degrade to
"no detection this tick" or "feature unavailable".
"""

from __future__ import annotations


class KioskError(Exception):
    """Base class for kiosk pipeline errors."""


class DeviceUnavailable(KioskError, RuntimeError):
    """The camera device could not be acquired."""


class FrameReadFailure(KioskError):
    """A single frame could not be read. Transient."""


class ModelLoadError(KioskError):
    """The detection model is missing or could not be parsed."""


class InferenceFailure(KioskError):
    """A forward pass or decode failed for one tick."""


class MismatchedDisposal(KioskError):
    """The reported disposal does not match the last recommendation."""
