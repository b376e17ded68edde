"""
Named one-shot timers.

Each purpose name ("message", "confirmation", "restart") has at most one
live timer: scheduling under a name cancels whatever was armed before.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

MESSAGE = "message"
CONFIRMATION = "confirmation"
RESTART = "restart"


@dataclass
class PendingTimer:
    """A scheduled callback waiting for its deadline."""
    name: str
    deadline: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class TimerService:
    """
    Schedules and cancels named single-shot callbacks.

    With autostart=True a daemon worker fires timers as they fall due.
    Tests pass a fake clock with autostart=False and call run_due().
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, autostart: bool = True):
        self._clock = clock
        self._timers: Dict[str, PendingTimer] = {}
        # Due timers removed from _timers whose callbacks have not returned.
        # cancel() still marks them, so a callback can re-check under its own lock.
        self._in_flight: Dict[str, PendingTimer] = {}
        self._cond = threading.Condition()
        self._closed = False
        self._worker: Optional[threading.Thread] = None
        if autostart:
            self.start()

    def start(self) -> None:
        """Start the background worker if it is not already running."""
        with self._cond:
            if self._worker is not None and self._worker.is_alive():
                return
            self._closed = False
            self._worker = threading.Thread(target=self._run, name="timer-service", daemon=True)
            self._worker.start()

    def schedule(self, name: str, delay_s: float, callback: Callable[[], None]) -> PendingTimer:
        """Arm a timer under name, replacing any live timer with that name."""
        now = self._clock()
        timer = PendingTimer(name=name, deadline=now + max(0.0, delay_s), callback=callback)
        with self._cond:
            self._cancel_locked(name)
            self._timers[name] = timer
            self._cond.notify_all()
        logging.debug(f"Timer '{name}' armed for {delay_s:.2f}s")
        return timer

    def cancel(self, name: str) -> bool:
        """Cancel the live timer under name. Returns True if one was pending."""
        with self._cond:
            cancelled = self._cancel_locked(name)
            self._cond.notify_all()
        if cancelled:
            logging.debug(f"Timer '{name}' cancelled")
        return cancelled

    def cancel_all(self) -> None:
        with self._cond:
            for name in list(self._timers) + list(self._in_flight):
                self._cancel_locked(name)
            self._cond.notify_all()

    def _cancel_locked(self, name: str) -> bool:
        cancelled = False
        for table in (self._timers, self._in_flight):
            timer = table.pop(name, None)
            if timer is not None and not timer.cancelled:
                timer.cancel()
                cancelled = True
        return cancelled

    def is_pending(self, name: str) -> bool:
        with self._cond:
            return name in self._timers

    def deadline(self, name: str) -> Optional[float]:
        with self._cond:
            timer = self._timers.get(name)
            return timer.deadline if timer is not None else None

    def pending_names(self) -> List[str]:
        with self._cond:
            return sorted(self._timers)

    def run_due(self, now: Optional[float] = None) -> int:
        """
        Fire every timer whose deadline has passed, earliest first.

        A timer stays in flight until its callback returns. Cancelling it
        in that window marks it cancelled (and returns True) but cannot
        stop a callback already running; callers that need that guarantee
        re-check the cancellation under their own lock.

        Returns:
            Number of callbacks invoked.
        """
        now = self._clock() if now is None else now
        with self._cond:
            due = sorted(
                (t for t in self._timers.values() if t.deadline <= now),
                key=lambda t: t.deadline,
            )
            for timer in due:
                del self._timers[timer.name]
                self._in_flight[timer.name] = timer

        fired = 0
        for timer in due:
            with self._cond:
                if timer.cancelled:
                    continue
            fired += 1
            try:
                timer.callback()
            except Exception as e:
                logging.warning(f"Timer '{timer.name}' callback error: {e}")
            finally:
                with self._cond:
                    if self._in_flight.get(timer.name) is timer:
                        del self._in_flight[timer.name]
        return fired

    def _next_deadline(self) -> Optional[float]:
        if not self._timers:
            return None
        return min(t.deadline for t in self._timers.values())

    def _run(self) -> None:
        while True:
            with self._cond:
                if self._closed:
                    return
                deadline = self._next_deadline()
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - self._clock()
                if remaining > 0:
                    self._cond.wait(remaining)
                    continue
            self.run_due()

    def shutdown(self, timeout: float = 1.0) -> None:
        """Cancel all timers and stop the worker."""
        with self._cond:
            self._closed = True
            for name in list(self._timers) + list(self._in_flight):
                self._cancel_locked(name)
            self._cond.notify_all()
            worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=timeout)
        self._worker = None
