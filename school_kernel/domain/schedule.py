"""
Schedule value types -- weekdays and recurrence segments.

A batch meets on one or more weekly blocks, each a (weekday, start, end)
triple.  Parsing and formatting of the legacy string encoding lives in
``school_engines.recurrence``; this module only defines the structural
types carried everywhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from enum import Enum


class Weekday(str, Enum):
    """Day of week, valued by its three-letter code."""

    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @property
    def weekday_index(self) -> int:
        """Python weekday index (Monday == 0)."""
        return _ORDER.index(self)

    @property
    def full_name(self) -> str:
        return _FULL_NAMES[self]

    @classmethod
    def from_date(cls, value: date) -> Weekday:
        return _ORDER[value.weekday()]

    @classmethod
    def from_token(cls, token: str | None) -> Weekday | None:
        """Resolve ``MON``, ``mon``, ``Monday`` or ``MONDAY``; None if unknown."""
        if not token:
            return None
        key = token.strip().upper()
        if key in _BY_CODE:
            return _BY_CODE[key]
        return _BY_FULL_NAME.get(key)


_ORDER: tuple[Weekday, ...] = (
    Weekday.MON,
    Weekday.TUE,
    Weekday.WED,
    Weekday.THU,
    Weekday.FRI,
    Weekday.SAT,
    Weekday.SUN,
)

_FULL_NAMES: dict[Weekday, str] = {
    Weekday.MON: "MONDAY",
    Weekday.TUE: "TUESDAY",
    Weekday.WED: "WEDNESDAY",
    Weekday.THU: "THURSDAY",
    Weekday.FRI: "FRIDAY",
    Weekday.SAT: "SATURDAY",
    Weekday.SUN: "SUNDAY",
}

_BY_CODE: dict[str, Weekday] = {d.value: d for d in _ORDER}
_BY_FULL_NAME: dict[str, Weekday] = {name: d for d, name in _FULL_NAMES.items()}


@dataclass(frozen=True, slots=True)
class RecurrenceSegment:
    """One weekly block of a batch: a weekday plus a start and end time."""

    day: Weekday
    start: time
    end: time

    def __str__(self) -> str:
        return f"{self.day.value} {self.start:%H:%M}-{self.end:%H:%M}"
