"""
Detection loop and presentation state machine.

    IDLE -> SCANNING -> CLASSIFIED -> (CONFIRMING) -> SCANNING -> ...

The poll thread runs Detector.detect_best on the latest camera frame.
A confident result stops polling, shows the recommended bin for the
message duration, then waits the restart delay before scanning again.
Reporting a disposal into the recommended bin shows a confirmation on
top of whatever the loop was doing.

Every transition bumps an epoch; a tick only applies its result if the
epoch it started under is still current. Each armed timer carries a
generation; a callback that was cancelled or re-armed while it was
already firing finds its generation gone and does nothing.
"""

from __future__ import annotations

import logging
import threading
import time
from functools import partial
from typing import Callable, Dict, Optional, Protocol

from classification.mapper import check_disposal, map_label_to_category
from models.category import WasteCategory
from models.config import TimingConfig
from models.detection import Detection
from models.errors import MismatchedDisposal
from models.frame import FrameData
from models.state import DetectionState
from .sink import PresentationSink
from .timers import CONFIRMATION, MESSAGE, RESTART, TimerService


class FrameProvider(Protocol):
    def latest_frame(self) -> Optional[FrameData]:
        ...


class BestDetector(Protocol):
    def detect_best(self, frame: FrameData) -> Optional[Detection]:
        ...


class DetectionLoopController:
    """
    Polls the detector, drives DetectionState and sequences display timers.

    Args:
        frames: Source of the latest camera frame.
        detector: Object exposing detect_best(frame).
        timers: Named timer service shared with nothing else.
        sink: Presentation sink receiving state-change events.
        timing: Poll interval and display durations.
        min_confidence: Minimum best-detection confidence to classify.
        background: Run the poll loop on a thread. Tests disable this and
            call tick() directly.
    """

    def __init__(
        self,
        frames: FrameProvider,
        detector: BestDetector,
        timers: TimerService,
        sink: PresentationSink,
        timing: Optional[TimingConfig] = None,
        min_confidence: float = 0.5,
        background: bool = True,
    ):
        self.frames = frames
        self.detector = detector
        self.timers = timers
        self.sink = sink
        self.timing = timing or TimingConfig()
        self.min_confidence = min_confidence
        self.background = background

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._state = DetectionState.IDLE
        self._prior_state: Optional[DetectionState] = None
        self._last_recommended: Optional[WasteCategory] = None
        self._last_detection: Optional[Detection] = None
        self._epoch = 0
        self._timer_generation = 0
        self._armed: Dict[str, int] = {}
        self._polling = False
        self._poll_stop: Optional[threading.Event] = None
        self._poll_thread: Optional[threading.Thread] = None
        self._skipped_ticks = 0

    # ------------------------------------------------------------------
    # Accessors

    @property
    def state(self) -> DetectionState:
        with self._lock:
            return self._state

    @property
    def last_recommended(self) -> Optional[WasteCategory]:
        with self._lock:
            return self._last_recommended

    @property
    def last_detection(self) -> Optional[Detection]:
        with self._lock:
            return self._last_detection

    @property
    def is_scanning(self) -> bool:
        with self._lock:
            return self._state is DetectionState.SCANNING

    @property
    def is_polling(self) -> bool:
        with self._lock:
            return self._polling

    @property
    def skipped_ticks(self) -> int:
        with self._lock:
            return self._skipped_ticks

    # ------------------------------------------------------------------
    # Commands from the shell

    def start(self) -> bool:
        """Begin scanning. Returns False if already scanning."""
        with self._lock:
            if self._state is DetectionState.SCANNING:
                logging.info("Already scanning")
                return False
            if not getattr(self.detector, "available", True):
                logging.warning("Detector unavailable; scanning will not produce detections")
            self._resume_scanning()
            return True

    def stop(self) -> None:
        """Cancel polling and all timers, and return to IDLE. Safe from any state."""
        with self._lock:
            self._set_state(DetectionState.IDLE)
            self._stop_polling()
            self._disarm_all()
            self._prior_state = None
            self._last_recommended = None
            self._last_detection = None
            thread = self._poll_thread
            self._poll_thread = None
        self._join(thread)
        logging.info("Detection loop stopped")

    def report_disposal(self, category: WasteCategory) -> bool:
        """
        Record that an item went into the given bin.

        Returns:
            True if it matched the last recommendation and a confirmation is shown.
        """
        with self._lock:
            try:
                check_disposal(self._last_recommended, category)
            except MismatchedDisposal as e:
                logging.info(f"Incorrect disposal detected: {e}")
                return False

            if self._state is not DetectionState.CONFIRMING:
                self._prior_state = self._state
                self._stop_polling()
                self._set_state(DetectionState.CONFIRMING)
            self._emit("on_confirmed")
            self._arm(CONFIRMATION, self.timing.confirmation_duration_s, self._on_confirmation_expired)
            logging.info(f"Correct disposal: {category.name}")
            return True

    def show_disposal_message(self, category: WasteCategory) -> None:
        """Display instructions for a category as if it had been detected."""
        with self._lock:
            if self._state is DetectionState.CONFIRMING:
                self._disarm(CONFIRMATION)
                self._prior_state = None
                self._emit("on_confirmation_hidden")
            self._classify(category, None)

    def simulate_detection(self, label: str) -> WasteCategory:
        """Run a label through the category rules and display the result."""
        logging.info(f"Simulating detection: {label}")
        category = map_label_to_category(label)
        self.show_disposal_message(category)
        return category

    def dismiss_message(self) -> None:
        """Hide any message or confirmation now and stop scanning."""
        with self._lock:
            state = self._state
            self._disarm_all()
            self._stop_polling()
            self._prior_state = None
            if state is DetectionState.CONFIRMING:
                self._emit("on_confirmation_hidden")
            if state in (DetectionState.CLASSIFIED, DetectionState.CONFIRMING):
                self._emit("on_message_hidden")
            self._set_state(DetectionState.IDLE)
            thread = self._poll_thread
            self._poll_thread = None
        self._join(thread)

    # ------------------------------------------------------------------
    # Polling

    def tick(self) -> Optional[WasteCategory]:
        """
        Run one detection pass on the latest frame.

        Skipped (returns None) if another tick is still running.

        Returns:
            The category applied by this tick, if it caused a classification.
        """
        if not self._tick_lock.acquire(blocking=False):
            with self._lock:
                self._skipped_ticks += 1
            return None
        try:
            with self._lock:
                if self._state is not DetectionState.SCANNING:
                    return None
                epoch = self._epoch

            frame = self.frames.latest_frame()
            if frame is None:
                return None

            try:
                best = self.detector.detect_best(frame)
            except Exception as e:
                logging.warning(f"Detection error: {e}")
                return None

            if best is None or best.confidence < self.min_confidence:
                return None
            category = map_label_to_category(best.label)

            with self._lock:
                if epoch != self._epoch or self._state is not DetectionState.SCANNING:
                    logging.debug(f"Discarding stale detection {best}")
                    return None
                logging.info(f"Detection: {best} -> {category.name}")
                self._classify(category, best)
                return category
        finally:
            self._tick_lock.release()

    def _poll_loop(self, stop_event: threading.Event) -> None:
        interval = self.timing.poll_interval_ms / 1000.0
        next_due = time.monotonic()
        while not stop_event.is_set():
            self.tick()
            next_due += interval
            now = time.monotonic()
            if next_due < now:
                missed = int((now - next_due) / interval) + 1
                with self._lock:
                    self._skipped_ticks += missed
                next_due += missed * interval
            stop_event.wait(next_due - now)

    def _start_polling(self) -> None:
        self._polling = True
        if not self.background:
            return
        self._poll_stop = threading.Event()
        self._poll_thread = threading.Thread(
            target=self._poll_loop,
            args=(self._poll_stop,),
            name="detection-loop",
            daemon=True,
        )
        self._poll_thread.start()

    def _stop_polling(self) -> None:
        self._polling = False
        if self._poll_stop is not None:
            self._poll_stop.set()
            self._poll_stop = None

    @staticmethod
    def _join(thread: Optional[threading.Thread]) -> None:
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    # ------------------------------------------------------------------
    # Transitions (caller holds self._lock)

    def _set_state(self, state: DetectionState) -> None:
        if state is not self._state:
            logging.debug(f"State {self._state.name} -> {state.name}")
        self._state = state
        self._epoch += 1

    def _resume_scanning(self) -> None:
        if self._state is DetectionState.SCANNING:
            return
        if self._state is DetectionState.CONFIRMING:
            self._prior_state = DetectionState.SCANNING
            return
        self._disarm(RESTART)
        self._set_state(DetectionState.SCANNING)
        self._start_polling()
        self._emit("on_scanning_started")
        logging.info("Scanning started")

    def _classify(self, category: WasteCategory, detection: Optional[Detection]) -> None:
        self._stop_polling()
        self._disarm(RESTART)
        self._set_state(DetectionState.CLASSIFIED)
        self._last_recommended = category
        self._last_detection = detection
        self._emit("on_classified", category)
        self._arm(MESSAGE, self.timing.message_duration_s, self._on_message_expired)
        logging.info(f"Showing disposal instruction: {category.name}")

    def _arm(self, name: str, delay_s: float, handler: Callable[[], None]) -> None:
        self._timer_generation += 1
        self._armed[name] = self._timer_generation
        self.timers.schedule(name, delay_s, partial(self._on_timer, name, self._timer_generation, handler))

    def _disarm(self, name: str) -> None:
        self._armed.pop(name, None)
        self.timers.cancel(name)

    def _disarm_all(self) -> None:
        self._armed.clear()
        self.timers.cancel_all()

    def _on_timer(self, name: str, generation: int, handler: Callable[[], None]) -> None:
        with self._lock:
            if self._armed.get(name) != generation:
                logging.debug(f"Ignoring superseded '{name}' timer")
                return
            del self._armed[name]
            handler()

    def _on_message_expired(self) -> None:
        self._emit("on_message_hidden")
        self._arm(RESTART, self.timing.restart_delay_s, self._on_restart)

    def _on_restart(self) -> None:
        self._resume_scanning()

    def _on_confirmation_expired(self) -> None:
        if self._state is not DetectionState.CONFIRMING:
            return
        self._emit("on_confirmation_hidden")
        target = self._prior_state or DetectionState.IDLE
        self._prior_state = None
        if target is DetectionState.SCANNING:
            self._set_state(DetectionState.IDLE)
            self._resume_scanning()
        else:
            self._set_state(target)

    def _emit(self, event: str, *args) -> None:
        handler = getattr(self.sink, event, None)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception as e:
            logging.warning(f"Presentation sink error in {event}: {e}")
