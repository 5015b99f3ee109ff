"""
Clock -- the single source of "today".

Engines never read the time.  ``DashboardService`` asks its Clock once per
call and hands the date down as an argument, so every derived value
(overdue flags, current-month compliance, the finance window) is a pure
function of the snapshot and that date.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone, tzinfo


class Clock(ABC):
    """Injected into services; ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in the school's zone (UTC unless given)."""

    def __init__(self, tz: tzinfo | None = None):
        self._tz = tz or timezone.utc

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """A clock that only moves when told to."""

    DEFAULT_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.DEFAULT_TIME

    @classmethod
    def on(cls, day: date) -> "DeterministicClock":
        """Pinned to noon UTC on ``day``."""
        return cls(datetime.combine(day, time(12, 0), tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._current

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
