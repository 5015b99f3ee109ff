"""
Module: school_engines.credit_ledger
Responsibility:
    Convert payments into purchased class credits and attendance into
    consumed credits, producing the remaining-credit, due-date and overdue
    state for each student enrollment.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import school_kernel.domain and sibling engine modules.

Invariants enforced:
    - Only ``present`` consumes a credit; ``absent`` and ``excused`` do not.
    - At most one attendance record counts per (student, batch, date); a
      later record in input order replaces an earlier one.
    - ``CreditBalance.balance`` is the true balance and may be negative;
      ``classes_remaining`` is clamped at 0 and is what callers display.
    - Unknown frequencies buy ``UNKNOWN_FREQUENCY_CREDITS`` (0) credits and
      never raise.
    - Credit conservation: ``balance == sum(credits) - present_count``.

Failure modes:
    - None for sparse data.  Unknown frequencies, zero class counts and
      students without payments all resolve to named defaults.

Usage:
    from school_engines.credit_ledger import credit_balance, is_overdue

    balance = credit_balance(payments, attendance, "stu-1", "batch-a")
    balance.classes_remaining   # 3
    is_overdue(date(2024, 1, 1), PaymentFrequency.MONTHLY,
               today=date(2024, 2, 1), remaining=0)  # True
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from school_kernel.domain.schedule import RecurrenceSegment
from school_kernel.domain.snapshots import (
    AttendanceRecord,
    AttendanceStatus,
    Batch,
    PaymentFrequency,
    PaymentRecord,
    Student,
)
from school_kernel.logging_config import get_logger
from school_engines.recurrence import sessions_per_week as recurrence_sessions_per_week
from school_engines.tracer import traced_engine

logger = get_logger("engines.credit_ledger")

# Class credits bought by one payment of each frequency.
CREDITS_PER_FREQUENCY: Mapping[PaymentFrequency, int] = {
    PaymentFrequency.MONTHLY: 8,
    PaymentFrequency.QUARTERLY: 24,
    PaymentFrequency.HALF_YEARLY: 48,
    PaymentFrequency.YEARLY: 96,
}

UNKNOWN_FREQUENCY_CREDITS = 0

# The school runs two sessions a week per enrollment by convention.
DEFAULT_SESSIONS_PER_WEEK = 2

# Overdue is only flagged once remaining credits fall to this many or fewer.
OVERDUE_LOW_WATER_MARK = 2

CADENCE_FIXED = "fixed"
CADENCE_SCHEDULE = "schedule"


def credits_for_frequency(
    frequency: PaymentFrequency | str | None,
    credit_table: Mapping[PaymentFrequency, int] | None = None,
) -> int:
    """Credits bought by one payment; unknown frequencies buy none."""
    table = CREDITS_PER_FREQUENCY if credit_table is None else credit_table
    parsed = PaymentFrequency.parse(frequency)
    credits = table.get(parsed)
    if credits is None:
        logger.debug("unknown_frequency_credits", extra={
            "frequency": str(frequency),
            "credits": UNKNOWN_FREQUENCY_CREDITS,
        })
        return UNKNOWN_FREQUENCY_CREDITS
    return credits


def latest_attendance(
    attendance: Iterable[AttendanceRecord],
) -> dict[tuple[str, str, date], AttendanceRecord]:
    """Collapse attendance to one record per (student, batch, date).

    Later records in iteration order overwrite earlier ones.
    """
    latest: dict[tuple[str, str, date], AttendanceRecord] = {}
    for record in attendance:
        latest[record.key] = record
    return latest


@dataclass(frozen=True)
class CreditBalance:
    """
    Purchased versus consumed credits for one (student, batch) pair.

    Contract:
        Frozen result of ``credit_balance``.
    Guarantees:
        - ``balance == purchased - consumed`` (may be negative).
        - ``classes_remaining == max(balance, 0)``.
    Non-goals:
        - Does not know when credits expire; overdue state is computed
          separately by ``is_overdue``.
    """

    student_id: str
    batch_id: str
    purchased: int
    consumed: int

    @property
    def balance(self) -> int:
        return self.purchased - self.consumed

    @property
    def classes_remaining(self) -> int:
        return max(self.balance, 0)

    @property
    def is_exhausted(self) -> bool:
        return self.balance <= 0


@traced_engine("credit_ledger", "1.0", fingerprint_fields=("student_id", "batch_id"))
def credit_balance(
    payments: Sequence[PaymentRecord],
    attendance: Sequence[AttendanceRecord],
    student_id: str,
    batch_id: str,
    credit_table: Mapping[PaymentFrequency, int] | None = None,
) -> CreditBalance:
    """Credits purchased and consumed for one student in one batch."""
    purchased = sum(
        credits_for_frequency(p.payment_frequency, credit_table)
        for p in payments
        if p.student_id == student_id and p.batch_id == batch_id
    )
    consumed = sum(
        1
        for record in latest_attendance(attendance).values()
        if record.student_id == student_id
        and record.batch_id == batch_id
        and record.status == AttendanceStatus.PRESENT
    )
    result = CreditBalance(
        student_id=student_id,
        batch_id=batch_id,
        purchased=purchased,
        consumed=consumed,
    )
    if result.balance < 0:
        logger.info("credit_balance_negative", extra={
            "student_id": student_id,
            "batch_id": batch_id,
            "balance": result.balance,
        })
    return result


def classes_remaining(
    payments: Sequence[PaymentRecord],
    attendance: Sequence[AttendanceRecord],
    student_id: str,
    batch_id: str,
    credit_table: Mapping[PaymentFrequency, int] | None = None,
) -> int:
    """Remaining credits as displayed: never negative."""
    return credit_balance(
        payments, attendance, student_id, batch_id, credit_table,
    ).classes_remaining


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def due_date(
    payment_timestamp: date | datetime,
    class_count: int,
    sessions_per_week: int = DEFAULT_SESSIONS_PER_WEEK,
) -> date | None:
    """Date by which ``class_count`` sessions are used up.

    ``payment_timestamp + class_count / sessions_per_week`` weeks.  Returns
    None ("no due date") when there is nothing to consume or no cadence.
    """
    if class_count <= 0 or sessions_per_week <= 0:
        return None
    return _as_date(payment_timestamp + timedelta(weeks=class_count / sessions_per_week))


def expected_start_date(
    last_payment_date: date | datetime,
    frequency: PaymentFrequency | str | None,
    sessions_per_week: int = DEFAULT_SESSIONS_PER_WEEK,
    credit_table: Mapping[PaymentFrequency, int] | None = None,
) -> date | None:
    """When the next paid period is expected to begin; None if unknown."""
    credits = credits_for_frequency(frequency, credit_table)
    return due_date(last_payment_date, credits, sessions_per_week)


def is_overdue(
    last_payment_date: date | datetime | None,
    frequency: PaymentFrequency | str | None,
    today: date,
    remaining: int,
    sessions_per_week: int = DEFAULT_SESSIONS_PER_WEEK,
    low_water_mark: int = OVERDUE_LOW_WATER_MARK,
    credit_table: Mapping[PaymentFrequency, int] | None = None,
) -> bool:
    """Heuristic overdue flag.

    Overdue when ``today`` is past the expected start of the next period
    and at most ``low_water_mark`` credits remain.  A student who never
    paid, or whose last payment has an unknown frequency, is never overdue.
    """
    if last_payment_date is None:
        return False
    start = expected_start_date(
        last_payment_date, frequency, sessions_per_week, credit_table,
    )
    if start is None:
        return False
    return today > start and remaining <= low_water_mark


def cadence_for(
    recurrence: Sequence[RecurrenceSegment],
    mode: str = CADENCE_FIXED,
    default: int = DEFAULT_SESSIONS_PER_WEEK,
) -> int:
    """Weekly session count used by the overdue heuristic.

    ``fixed`` always uses ``default``; ``schedule`` uses the batch's own
    recurrence, falling back to ``default`` when it has no segments.
    """
    if mode == CADENCE_SCHEDULE:
        weekly = recurrence_sessions_per_week(recurrence)
        if weekly > 0:
            return weekly
    return default


# ---------------------------------------------------------------------------
# Per-student view
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnrollmentStatus:
    """Credit and overdue state for one enrollment."""

    batch_id: str
    payment_frequency: PaymentFrequency
    balance: CreditBalance
    last_payment: PaymentRecord | None
    expected_start_date: date | None
    is_overdue: bool

    @property
    def classes_remaining(self) -> int:
        return self.balance.classes_remaining


@dataclass(frozen=True)
class StudentCreditStatus:
    """
    Aggregated credit state for one student across active enrollments.

    Contract:
        ``classes_remaining`` is the sum of the per-enrollment clamped
        values; ``is_overdue`` is true when any enrollment is overdue;
        ``expected_start_date`` is the earliest enrollment start date.
    """

    student_id: str
    enrollments: tuple[EnrollmentStatus, ...]

    @property
    def classes_remaining(self) -> int:
        return sum(e.classes_remaining for e in self.enrollments)

    @property
    def is_overdue(self) -> bool:
        return any(e.is_overdue for e in self.enrollments)

    @property
    def expected_start_date(self) -> date | None:
        dates = [e.expected_start_date for e in self.enrollments if e.expected_start_date]
        return min(dates) if dates else None

    def for_batch(self, batch_id: str) -> EnrollmentStatus | None:
        return next((e for e in self.enrollments if e.batch_id == batch_id), None)


@dataclass(frozen=True)
class AttendanceSummary:
    """Counts of each attendance status for one student."""

    student_id: str
    present: int = 0
    absent: int = 0
    excused: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.excused


class CreditLedger:
    """
    Stateless per-student credit view over a snapshot's facts.

    Contract:
        Holds only policy (credit table, cadence mode, low-water mark).
        Every method is a pure function of its arguments.
    Guarantees:
        - Inactive enrollments are excluded from ``student_status``.
        - The same inputs always produce the same result.
    Non-goals:
        - Does not record payments or attendance.
    """

    def __init__(
        self,
        credit_table: Mapping[PaymentFrequency, int] | None = None,
        cadence_mode: str = CADENCE_FIXED,
        sessions_per_week: int = DEFAULT_SESSIONS_PER_WEEK,
        low_water_mark: int = OVERDUE_LOW_WATER_MARK,
    ):
        self._credit_table = dict(credit_table or CREDITS_PER_FREQUENCY)
        self._cadence_mode = cadence_mode
        self._sessions_per_week = sessions_per_week
        self._low_water_mark = low_water_mark

    @staticmethod
    def last_payment(
        payments: Sequence[PaymentRecord],
        student_id: str,
        batch_id: str | None = None,
    ) -> PaymentRecord | None:
        """Most recent payment by timestamp; ties go to the later record."""
        latest: PaymentRecord | None = None
        for payment in payments:
            if payment.student_id != student_id:
                continue
            if batch_id is not None and payment.batch_id != batch_id:
                continue
            if latest is None or payment.timestamp >= latest.timestamp:
                latest = payment
        return latest

    def enrollment_status(
        self,
        student: Student,
        batch_id: str,
        payments: Sequence[PaymentRecord],
        attendance: Sequence[AttendanceRecord],
        today: date,
        batch: Batch | None = None,
    ) -> EnrollmentStatus:
        enrollment = student.enrollment_for(batch_id)
        balance = credit_balance(
            payments, attendance, student.id, batch_id, self._credit_table,
        )
        last = self.last_payment(payments, student.id, batch_id)

        frequency = PaymentFrequency.UNKNOWN
        if last is not None and last.payment_frequency.is_known:
            frequency = last.payment_frequency
        elif enrollment is not None:
            frequency = enrollment.payment_frequency

        weekly = cadence_for(
            batch.recurrence if batch is not None else (),
            self._cadence_mode,
            self._sessions_per_week,
        )
        start = None
        overdue = False
        if last is not None:
            start = expected_start_date(
                last.timestamp, frequency, weekly, self._credit_table,
            )
            overdue = is_overdue(
                last.timestamp,
                frequency,
                today,
                balance.balance,
                sessions_per_week=weekly,
                low_water_mark=self._low_water_mark,
                credit_table=self._credit_table,
            )

        return EnrollmentStatus(
            batch_id=batch_id,
            payment_frequency=frequency,
            balance=balance,
            last_payment=last,
            expected_start_date=start,
            is_overdue=overdue,
        )

    def student_status(
        self,
        student: Student,
        payments: Sequence[PaymentRecord],
        attendance: Sequence[AttendanceRecord],
        today: date,
        batches: Sequence[Batch] = (),
    ) -> StudentCreditStatus:
        """Credit state of every active enrollment of ``student``."""
        by_id = {b.id: b for b in batches}
        statuses = tuple(
            self.enrollment_status(
                student,
                enrollment.batch_id,
                payments,
                attendance,
                today,
                by_id.get(enrollment.batch_id),
            )
            for enrollment in student.active_enrollments
        )
        overdue = [s.batch_id for s in statuses if s.is_overdue]
        if overdue:
            logger.info("student_overdue", extra={
                "student_id": student.id,
                "overdue_batches": overdue,
            })
        return StudentCreditStatus(student_id=student.id, enrollments=statuses)

    @staticmethod
    def attendance_summary(
        attendance: Sequence[AttendanceRecord],
        student_id: str,
        batch_id: str | None = None,
    ) -> AttendanceSummary:
        counts = {status: 0 for status in AttendanceStatus}
        for record in latest_attendance(attendance).values():
            if record.student_id != student_id:
                continue
            if batch_id is not None and record.batch_id != batch_id:
                continue
            counts[record.status] += 1
        return AttendanceSummary(
            student_id=student_id,
            present=counts[AttendanceStatus.PRESENT],
            absent=counts[AttendanceStatus.ABSENT],
            excused=counts[AttendanceStatus.EXCUSED],
        )
