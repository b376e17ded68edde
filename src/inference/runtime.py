"""
Process-wide OpenCV runtime initialization.

Camera capture and model loading both call initialize_runtime() before
first use; the body runs exactly once per process.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import cv2

_init_lock = threading.Lock()
_initialized = False


def initialize_runtime(num_threads: Optional[int] = None) -> bool:
    """
    Initialize the OpenCV runtime once.

    Args:
        num_threads: Optional thread count for OpenCV's parallel backend.
            Only honoured by the first call.

    Returns:
        True if this call performed the initialization, False if it had
        already been done.
    """
    global _initialized
    if _initialized:
        return False

    with _init_lock:
        if _initialized:
            return False

        cv2.setUseOptimized(True)
        if num_threads is not None:
            cv2.setNumThreads(int(num_threads))

        logging.info(
            f"OpenCV runtime initialized: version={cv2.__version__}, "
            f"optimized={cv2.useOptimized()}, threads={cv2.getNumThreads()}"
        )
        _initialized = True
        return True


def is_initialized() -> bool:
    return _initialized
