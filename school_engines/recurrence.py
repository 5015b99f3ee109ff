"""
Module: school_engines.recurrence
Responsibility:
    Parse and format a batch's weekly schedule and count the sessions it
    implies over a date range.

    The legacy encoding is a comma-separated list of ``DAY HH:MM-HH:MM``
    segments, e.g. ``"MON 17:00-18:00, WED 18:00-19:00"``.  It is parsed
    once at the boundary into ``RecurrenceSegment`` tuples and carried
    structurally from there on; ``format_recurrence`` exists only so the
    storage layer can keep writing the string form.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import school_kernel.domain and sibling engine modules.

Invariants enforced:
    - Partial parses: a malformed segment (missing day, unknown day,
      missing dash, unparseable time) is dropped; the remaining valid
      segments are still returned.
    - Exact duplicate segments are dropped; the same day may appear twice
      only with different times.
    - ``format_recurrence(parse_recurrence(s)) == normalize_recurrence(s)``.
    - ``expected_session_count`` is non-decreasing as the range widens and
      returns 0 for a reversed range.

Failure modes:
    - None.  Every function here degrades instead of raising.

Usage:
    from school_engines.recurrence import parse_recurrence, expected_session_count

    segments = parse_recurrence("TUE 17:00-18:00, THU 17:00-18:00")
    expected_session_count(segments, date(2024, 2, 1), date(2024, 2, 29))  # 9
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date, time

from school_kernel.domain.schedule import RecurrenceSegment, Weekday
from school_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def _parse_time(token: str) -> time | None:
    match = _TIME_RE.match(token.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def parse_segment(text: str) -> RecurrenceSegment | None:
    """Parse one ``DAY HH:MM-HH:MM`` segment; None when malformed."""
    parts = text.strip().split()
    if len(parts) < 2:
        return None
    day = Weekday.from_token(parts[0])
    if day is None:
        return None
    # Tolerate "MON 17:00 - 18:00" by rejoining the remainder.
    times = "".join(parts[1:]).split("-")
    if len(times) != 2:
        return None
    start, end = _parse_time(times[0]), _parse_time(times[1])
    if start is None or end is None:
        return None
    return RecurrenceSegment(day=day, start=start, end=end)


def parse_recurrence(text: str | None) -> tuple[RecurrenceSegment, ...]:
    """Parse a recurrence string into its valid segments, in source order."""
    if not text:
        return ()

    segments: list[RecurrenceSegment] = []
    dropped: list[str] = []
    for raw in text.split(","):
        if not raw.strip():
            continue
        segment = parse_segment(raw)
        if segment is None:
            dropped.append(raw.strip())
            continue
        if segment in segments:
            dropped.append(raw.strip())
            continue
        segments.append(segment)

    if dropped:
        logger.warning("recurrence_segments_dropped", extra={
            "recurrence": text,
            "dropped": dropped,
            "kept_count": len(segments),
        })
    return tuple(segments)


def format_recurrence(segments: Iterable[RecurrenceSegment]) -> str:
    """Serialize segments to the canonical ``"MON 17:00-18:00, ..."`` form."""
    return ", ".join(str(segment) for segment in segments)


def normalize_recurrence(text: str | None) -> str:
    """Canonical spelling of a recurrence string (invalid segments removed)."""
    return format_recurrence(parse_recurrence(text))


def weekday_occurrences(weekday: Weekday, from_date: date, to_date: date) -> int:
    """How many times ``weekday`` falls in ``[from_date, to_date]``."""
    if from_date > to_date:
        return 0
    total_days = (to_date - from_date).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    offset = (weekday.weekday_index - from_date.weekday()) % 7
    return full_weeks + (1 if offset < remainder else 0)


def expected_session_count(
    segments: Sequence[RecurrenceSegment],
    from_date: date,
    to_date: date,
) -> int:
    """Sessions implied by ``segments`` within the inclusive date range.

    Each segment contributes one session per occurrence of its weekday, so
    two blocks on the same day count twice.  A reversed range yields 0.
    """
    if from_date > to_date:
        return 0
    return sum(
        weekday_occurrences(segment.day, from_date, to_date)
        for segment in segments
    )


def sessions_per_week(segments: Sequence[RecurrenceSegment]) -> int:
    """Number of weekly sessions the schedule implies."""
    return len(segments)


def _day_tokens(recurrence: str) -> list[Weekday]:
    days: list[Weekday] = []
    for part in recurrence.split(","):
        words = part.strip().split()
        if not words:
            continue
        day = Weekday.from_token(words[0])
        if day is not None:
            days.append(day)
    return days


def matches_day(
    recurrence: str | Sequence[RecurrenceSegment] | None,
    weekday_code: str | Weekday,
) -> bool:
    """True when the schedule has a block on ``weekday_code``.

    Case-insensitive, and both ``MON`` and ``MONDAY`` spellings are
    accepted in the schedule and in the code.  Only the leading day token
    of each string segment is consulted, so legacy segments without times
    still match.
    """
    if not recurrence:
        return False
    wanted = weekday_code if isinstance(weekday_code, Weekday) else Weekday.from_token(weekday_code)
    if wanted is None:
        return False
    if isinstance(recurrence, str):
        return wanted in _day_tokens(recurrence)
    return any(segment.day == wanted for segment in recurrence)


def runs_on(recurrence: Sequence[RecurrenceSegment], on_date: date) -> bool:
    """True when the schedule has a block on ``on_date``'s weekday."""
    return matches_day(recurrence, Weekday.from_date(on_date))
