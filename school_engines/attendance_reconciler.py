"""
Module: school_engines.attendance_reconciler
Responsibility:
    Compare a teacher's scheduled sessions (derived from batch recurrence)
    with the sessions actually recorded as conducted, month by month.
    Also answers "which batches run on this date" and validates marks for
    unscheduled (compensation, extra, trial) sessions.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import school_kernel.domain and sibling engine modules.

Invariants enforced:
    - ``expected`` is schedule-derived only; unscheduled marks never
      change it.
    - ``conducted`` counts distinct (batch, date) sessions; a later mark
      for the same (batch, date) replaces an earlier one.
    - A mark belongs to a teacher when its batch is assigned to that
      teacher, or when it carries that teacher's id.
    - ``current_month_rate`` is 100 when nothing was expected.
    - Compliance bands are display classification only.

Failure modes:
    - InvalidDateRangeError when the requested month range is reversed.
    - UnassignedBatchError from ``unscheduled_mark`` when the batch is not
      assigned to the teacher.

Usage:
    from school_engines.attendance_reconciler import monthly_breakdown

    rows = monthly_breakdown("t-1", batches, teacher_marks, "2024-01", "2024-03")
    [(str(r.month), r.expected, r.conducted, r.band) for r in rows]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from school_kernel.domain.periods import MonthKey, month_range
from school_kernel.domain.snapshots import (
    AttendanceRecord,
    Batch,
    SessionStatus,
    TeacherAttendanceRecord,
    UnscheduledReason,
)
from school_kernel.exceptions import UnassignedBatchError
from school_kernel.logging_config import get_logger
from school_engines.recurrence import expected_session_count, runs_on
from school_engines.tracer import traced_engine

logger = get_logger("engines.attendance_reconciler")

# Rate reported when a teacher had no sessions scheduled.
NO_EXPECTED_SESSIONS_RATE = Decimal("100")


class ComplianceBand(str, Enum):
    COMPLIANT = "compliant"
    ONE_SHORT = "one_short"
    SHORT = "short"


def band_for(delta: int) -> ComplianceBand:
    """Classify ``conducted - expected`` for display."""
    if delta >= 0:
        return ComplianceBand.COMPLIANT
    if delta == -1:
        return ComplianceBand.ONE_SHORT
    return ComplianceBand.SHORT


@dataclass(frozen=True)
class MonthlyAttendanceRow:
    """Expected versus conducted sessions for one teacher-month."""

    month: MonthKey
    expected: int
    conducted: int

    @property
    def delta(self) -> int:
        return self.conducted - self.expected

    @property
    def band(self) -> ComplianceBand:
        return band_for(self.delta)


def teacher_batches(teacher_id: str, batches: Iterable[Batch]) -> tuple[Batch, ...]:
    """Batches whose ``teacher_id`` is ``teacher_id``."""
    return tuple(b for b in batches if b.teacher_id is not None and b.teacher_id == teacher_id)


def latest_marks(
    teacher_attendance: Iterable[TeacherAttendanceRecord],
) -> dict[tuple[str, date], TeacherAttendanceRecord]:
    """One mark per (batch, date); later marks overwrite earlier ones."""
    latest: dict[tuple[str, date], TeacherAttendanceRecord] = {}
    for mark in teacher_attendance:
        latest[mark.key] = mark
    return latest


def conducted_sessions(
    teacher_id: str,
    batches: Sequence[Batch],
    teacher_attendance: Iterable[TeacherAttendanceRecord],
    student_attendance: Iterable[AttendanceRecord] = (),
    include_implicit: bool = False,
) -> set[tuple[str, date]]:
    """Distinct (batch_id, date) sessions the teacher conducted.

    With ``include_implicit``, a session with student attendance but no
    teacher mark at all also counts as conducted.
    """
    assigned = {b.id for b in teacher_batches(teacher_id, batches)}
    marks = latest_marks(teacher_attendance)

    sessions = {
        key
        for key, mark in marks.items()
        if mark.status == SessionStatus.CONDUCTED
        and (mark.batch_id in assigned or mark.teacher_id == teacher_id)
    }

    if include_implicit:
        implicit = {
            (record.batch_id, record.session_date)
            for record in student_attendance
            if record.batch_id in assigned
            and (record.batch_id, record.session_date) not in marks
        }
        if implicit:
            logger.debug("implicit_sessions_counted", extra={
                "teacher_id": teacher_id,
                "implicit_count": len(implicit),
            })
        sessions |= implicit
    return sessions


def expected_sessions_in_month(batches: Iterable[Batch], month: MonthKey) -> int:
    return sum(
        expected_session_count(b.recurrence, month.first_day, month.last_day)
        for b in batches
    )


@traced_engine("attendance_reconciler", "1.0", fingerprint_fields=("teacher_id", "start", "end"))
def monthly_breakdown(
    teacher_id: str,
    batches: Sequence[Batch],
    teacher_attendance: Sequence[TeacherAttendanceRecord],
    start: MonthKey | str,
    end: MonthKey | str,
    student_attendance: Sequence[AttendanceRecord] = (),
    include_implicit: bool = False,
) -> tuple[MonthlyAttendanceRow, ...]:
    """One row per month from ``start`` to ``end`` inclusive.

    Raises:
        InvalidDateRangeError: ``end`` precedes ``start``.
    """
    months = month_range(start, end)
    assigned = teacher_batches(teacher_id, batches)
    sessions = conducted_sessions(
        teacher_id, batches, teacher_attendance, student_attendance, include_implicit,
    )

    rows = []
    for month in months:
        conducted = sum(1 for _, session_date in sessions if month.contains(session_date))
        rows.append(MonthlyAttendanceRow(
            month=month,
            expected=expected_sessions_in_month(assigned, month),
            conducted=conducted,
        ))

    short = [str(r.month) for r in rows if r.band is ComplianceBand.SHORT]
    logger.info("monthly_breakdown_computed", extra={
        "teacher_id": teacher_id,
        "month_count": len(rows),
        "short_months": short,
    })
    return tuple(rows)


def current_month_rate(expected: int, conducted: int) -> Decimal:
    """Whole-percent compliance; ``NO_EXPECTED_SESSIONS_RATE`` if expected is 0."""
    if expected <= 0:
        return NO_EXPECTED_SESSIONS_RATE
    rate = Decimal(conducted) * Decimal(100) / Decimal(expected)
    return rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TeacherAttendanceSummary:
    teacher_id: str
    total_sessions_conducted: int
    current_month_sessions: int
    current_month_expected: int

    @property
    def current_month_rate(self) -> Decimal:
        return current_month_rate(self.current_month_expected, self.current_month_sessions)


def teacher_summary(
    teacher_id: str,
    batches: Sequence[Batch],
    teacher_attendance: Sequence[TeacherAttendanceRecord],
    today: date,
    student_attendance: Sequence[AttendanceRecord] = (),
    include_implicit: bool = False,
) -> TeacherAttendanceSummary:
    """Lifetime and current-month session totals for one teacher."""
    sessions = conducted_sessions(
        teacher_id, batches, teacher_attendance, student_attendance, include_implicit,
    )
    month = MonthKey.of(today)
    return TeacherAttendanceSummary(
        teacher_id=teacher_id,
        total_sessions_conducted=len(sessions),
        current_month_sessions=sum(1 for _, d in sessions if month.contains(d)),
        current_month_expected=expected_sessions_in_month(
            teacher_batches(teacher_id, batches), month,
        ),
    )


# ---------------------------------------------------------------------------
# Daily view and unscheduled sessions
# ---------------------------------------------------------------------------


def scheduled_batches(
    batches: Iterable[Batch],
    on_date: date,
    teacher_id: str | None = None,
) -> tuple[Batch, ...]:
    """Batches whose recurrence has a block on ``on_date``'s weekday."""
    return tuple(
        b for b in batches
        if runs_on(b.recurrence, on_date)
        and (teacher_id is None or b.teacher_id == teacher_id)
    )


@dataclass(frozen=True)
class RosterEntry:
    """A scheduled batch on a date and its teacher mark, if any."""

    batch: Batch
    session_date: date
    mark: TeacherAttendanceRecord | None

    @property
    def status(self) -> SessionStatus | None:
        return self.mark.status if self.mark is not None else None

    @property
    def is_marked(self) -> bool:
        return self.mark is not None


def daily_roster(
    batches: Sequence[Batch],
    teacher_attendance: Sequence[TeacherAttendanceRecord],
    on_date: date,
    teacher_id: str | None = None,
) -> tuple[RosterEntry, ...]:
    marks = latest_marks(teacher_attendance)
    return tuple(
        RosterEntry(batch=b, session_date=on_date, mark=marks.get((b.id, on_date)))
        for b in scheduled_batches(batches, on_date, teacher_id)
    )


def unscheduled_mark(
    teacher_id: str,
    batch_id: str,
    session_date: date,
    reason: UnscheduledReason | str,
    batches: Sequence[Batch],
    notes: str | None = None,
) -> TeacherAttendanceRecord:
    """Build a ``conducted`` mark for a session the schedule does not contain.

    The mark is accepted against any batch assigned to the teacher, even on
    a day the teacher has nothing scheduled.  ``notes`` defaults to the
    reason's label (e.g. "Extra Class").

    Raises:
        UnassignedBatchError: ``batch_id`` is not assigned to the teacher.
    """
    if batch_id not in {b.id for b in teacher_batches(teacher_id, batches)}:
        raise UnassignedBatchError(teacher_id, batch_id, session_date)

    if not isinstance(reason, UnscheduledReason):
        reason = UnscheduledReason.from_note(reason) or UnscheduledReason.OTHER

    text = reason.label if not notes else f"{reason.label}: {notes}"
    mark = TeacherAttendanceRecord(
        batch_id=batch_id,
        session_date=session_date,
        status=SessionStatus.CONDUCTED,
        teacher_id=teacher_id,
        notes=text,
        unscheduled_reason=reason,
    )
    logger.info("unscheduled_session_marked", extra={
        "teacher_id": teacher_id,
        "batch_id": batch_id,
        "session_date": session_date,
        "reason": reason.value,
    })
    return mark
