"""Wall-clock sources for the session timer."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional


class Clock:
    """Source of the current wall-clock time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class ManualClock(Clock):
    """A clock that only moves when told to; used for simulations and tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2025, 3, 24, 9, 0, 0)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value
