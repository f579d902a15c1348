"""
Clock collaborator.

Timestamps are integer milliseconds since the epoch. The engine itself only
hands the clock to callers (for stamping content); link ordering timestamps
come from the link index, which takes its own clock.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of millisecond timestamps."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to (testing helper).

    Example:
        >>> clock = ManualClock(100)
        >>> clock.now()
        100
        >>> clock.advance(50)
        >>> clock.now()
        150
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, value_ms: int) -> None:
        with self._lock:
            self._now = value_ms

    def advance(self, delta_ms: int = 1) -> None:
        with self._lock:
            self._now += delta_ms


_system_clock = SystemClock()


def now() -> int:
    """Get the current unix timestamp in milliseconds."""
    return _system_clock.now()
