"""
Clock facility shared by time-sensitive components.

Everything in the access layer reasons about time as integer epoch
milliseconds, which is also the wire format of credential expiry.
"""

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        ...


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """
    Virtual clock that only moves when told to.

    Used by tests to exercise expiry, staleness and window boundaries without
    sleeping.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._now = int(start_ms)
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            return self._now

    def advance(self, ms: int) -> int:
        with self._lock:
            self._now += int(ms)
            return self._now

    def set(self, ms: int) -> None:
        with self._lock:
            self._now = int(ms)
