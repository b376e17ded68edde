"""
Presentation sink interface.

The detection loop only pushes events out through this interface; the
shell talks back through DetectionLoopController.start/stop/report_disposal.
"""

from __future__ import annotations

import logging
from typing import Protocol

from models.category import WasteCategory
from models.frame import FrameData


class PresentationSink(Protocol):
    def on_scanning_started(self) -> None:
        ...

    def on_classified(self, category: WasteCategory) -> None:
        ...

    def on_message_hidden(self) -> None:
        ...

    def on_confirmed(self) -> None:
        ...

    def on_confirmation_hidden(self) -> None:
        ...

    def on_camera_error(self, message: str) -> None:
        ...

    def on_frame_ready(self, frame: FrameData) -> None:
        ...


class LoggingSink:
    """Headless sink that writes every presentation event to the log."""

    def __init__(self) -> None:
        self.frames_seen = 0

    def on_scanning_started(self) -> None:
        logging.info("Scanning... Hold item in front of camera")

    def on_classified(self, category: WasteCategory) -> None:
        logging.info(f"{category.icon} {category.display_name}: {category.instruction}")

    def on_message_hidden(self) -> None:
        logging.info("Disposal message hidden")

    def on_confirmed(self) -> None:
        logging.info("✓ Correct Disposal!")

    def on_confirmation_hidden(self) -> None:
        logging.info("Confirmation hidden")

    def on_camera_error(self, message: str) -> None:
        logging.error(f"Camera error: {message}")

    def on_frame_ready(self, frame: FrameData) -> None:
        self.frames_seen += 1
        if self.frames_seen % 300 == 0:
            logging.debug(f"Camera feed: {self.frames_seen} frames ({frame.width}x{frame.height})")
