"""
Logging setup.
"""

from __future__ import annotations

import logging
import os

DEBUG_ENV_VAR = "KIOSK_DEBUG"


def setup_logging(log_path: str, log_level: str) -> None:
    """
    Log to a file and to the console.

    KIOSK_DEBUG=1 forces DEBUG level so decoder score diagnostics are visible.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    if os.environ.get(DEBUG_ENV_VAR) == "1":
        log_level = "DEBUG"

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(threadName)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )
