"""
Periods -- calendar month keys and inclusive month ranges.

Budgets, finance summaries and teacher attendance breakdowns are all keyed
by calendar month (``YYYY-MM``).  ``MonthKey`` is the value type for that
key; ``month_range`` expands an inclusive range into its months.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime

from school_kernel.exceptions import InvalidDateRangeError, InvalidMonthKeyError

_MONTH_KEY_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})(?:-\d{1,2})?\s*$")


@dataclass(frozen=True, slots=True, order=True)
class MonthKey:
    """A calendar month. Ordered chronologically."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidMonthKeyError(f"{self.year}-{self.month}")

    @classmethod
    def parse(cls, value: MonthKey | str | date) -> MonthKey:
        """Parse ``YYYY-MM`` (a trailing ``-DD`` is ignored) or take a date."""
        if isinstance(value, MonthKey):
            return value
        if isinstance(value, date):
            return cls(value.year, value.month)
        if not isinstance(value, str):
            raise InvalidMonthKeyError(value)
        match = _MONTH_KEY_RE.match(value)
        if match is None:
            raise InvalidMonthKeyError(value)
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, value: date | datetime) -> MonthKey:
        return cls(value.year, value.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, value: date | datetime) -> bool:
        return value.year == self.year and value.month == self.month

    def shift(self, months: int) -> MonthKey:
        """The month ``months`` away (negative goes back)."""
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(index // 12, index % 12 + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def month_range(start: MonthKey | str, end: MonthKey | str) -> tuple[MonthKey, ...]:
    """Every month from ``start`` to ``end`` inclusive.

    Raises:
        InvalidDateRangeError: ``end`` precedes ``start``.
    """
    first = MonthKey.parse(start)
    last = MonthKey.parse(end)
    if last < first:
        raise InvalidDateRangeError(first, last)
    months = []
    current = first
    while current <= last:
        months.append(current)
        current = current.shift(1)
    return tuple(months)


def trailing_months(anchor: MonthKey | str, count: int) -> tuple[MonthKey, ...]:
    """``count`` months ending with ``anchor``, oldest first."""
    last = MonthKey.parse(anchor)
    if count < 1:
        return ()
    return month_range(last.shift(-(count - 1)), last)
