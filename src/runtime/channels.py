"""
Single-slot, last-write-wins hand-off between threads.
"""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class LatestValue(Generic[T]):
    """
    Holds only the most recent value.

    A writer never blocks and never queues: a new value overwrites any
    unread one, so a slow reader simply misses intermediate values.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = None

    def put(self, value: T) -> None:
        with self._lock:
            self._value = value

    def get(self) -> Optional[T]:
        with self._lock:
            return self._value

    def clear(self) -> None:
        with self._lock:
            self._value = None
