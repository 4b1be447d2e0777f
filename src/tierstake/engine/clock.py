"""Day counters read by the ledger at call time."""

import time
from typing import Callable, Optional, Protocol

SECONDS_PER_DAY = 86_400


class DayClock(Protocol):
    def current_day(self) -> int:
        ...


class SystemDayClock:
    """Whole days elapsed since the Unix epoch."""

    def __init__(self, time_source: Optional[Callable[[], float]] = None):
        self._time_source = time_source or time.time

    def current_day(self) -> int:
        return int(self._time_source()) // SECONDS_PER_DAY


class ManualDayClock:
    """Settable clock for tests and scenario replay. Only moves forward."""

    def __init__(self, day: int = 0):
        self._day = day

    def current_day(self) -> int:
        return self._day

    def advance(self, days: int = 1) -> int:
        if days < 0:
            raise ValueError("Clock cannot move backwards")
        self._day += days
        return self._day

    def set_day(self, day: int) -> None:
        if day < self._day:
            raise ValueError(f"Clock cannot move backwards from day {self._day} to {day}")
        self._day = day
