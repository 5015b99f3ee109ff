"""
Snapshots -- immutable facts the ledger computes over.

Responsibility
--------------
Frozen dataclass value objects for every fact the external storage layer
hands the engine: students and their enrollments, batches, payments,
student and teacher attendance, teachers and their payout history,
expenses, budgets and the fee structure.  ``SchoolSnapshot`` bundles one
committed read of all of them.

Architecture position
---------------------
**Kernel > Domain** -- pure data definitions with ZERO I/O.  Built by
``school_ingestion`` and consumed by ``school_engines``.

Invariants enforced
-------------------
* All models are ``frozen=True``; collections are tuples.
* All monetary fields use ``Money`` -- NEVER ``float``.
* Derived values (classes remaining, overdue, profit) are never stored
  here; engines recompute them on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.schedule import RecurrenceSegment
from school_kernel.domain.values import Currency, Money


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PaymentFrequency(str, Enum):
    """How often a student pays for an enrollment.

    ``UNKNOWN`` stands in for missing or unrecognised frequencies so that
    consumers never branch on raw strings.
    """

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> PaymentFrequency:
        """Map a frequency token to a member; anything unrecognised is UNKNOWN."""
        if isinstance(value, PaymentFrequency):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        token = value.strip().lower().replace("-", "_").replace(" ", "_")
        if token in ("halfyearly", "half_year", "semi_annual", "semiannual"):
            token = cls.HALF_YEARLY.value
        elif token in ("annual", "annually"):
            token = cls.YEARLY.value
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self is not PaymentFrequency.UNKNOWN


class AttendanceStatus(str, Enum):
    """Per-student mark for one session."""

    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


class SessionStatus(str, Enum):
    """Teacher-side mark for one session."""

    CONDUCTED = "conducted"
    NOT_CONDUCTED = "not_conducted"


class UnscheduledReason(str, Enum):
    """Why a teacher held a session the schedule does not contain."""

    COMPENSATION = "compensation"
    EXTRA = "extra"
    TRIAL = "trial"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]

    @classmethod
    def from_note(cls, note: str | None) -> UnscheduledReason | None:
        """Recover the reason from a note written as ``"<label>"`` or ``"<label>: <detail>"``.

        Only an exact label (or reason value) counts; free text such as
        "Extra practice" on a scheduled session yields None.
        """
        if not note:
            return None
        head = note.partition(":")[0].strip().lower()
        for reason in cls:
            if head in (reason.value, reason.label.lower()):
                return reason
        if head in _MAKEUP_ALIASES:
            return cls.COMPENSATION
        return None


_REASON_LABELS = {
    UnscheduledReason.COMPENSATION: "Compensation Class",
    UnscheduledReason.EXTRA: "Extra Class",
    UnscheduledReason.TRIAL: "Trial Class",
    UnscheduledReason.OTHER: "Other",
}

_MAKEUP_ALIASES = frozenset({"makeup", "make-up", "makeup class", "make-up class"})


class PayoutModel(str, Enum):
    """How a teacher is paid."""

    FIXED = "fixed"
    PER_STUDENT_MONTHLY = "per_student_monthly"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> PayoutModel:
        if isinstance(value, PayoutModel):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


# ---------------------------------------------------------------------------
# Students and batches
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Enrollment:
    """A student's seat in one batch."""

    batch_id: str
    payment_frequency: PaymentFrequency = PaymentFrequency.UNKNOWN
    instrument_id: str | None = None
    enrolled_on: date | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Student:
    id: str
    name: str = ""
    phone: str | None = None
    guardian_contact: str | None = None
    is_active: bool = True
    enrollments: tuple[Enrollment, ...] = ()

    @property
    def active_enrollments(self) -> tuple[Enrollment, ...]:
        return tuple(e for e in self.enrollments if e.is_active)

    def enrollment_for(self, batch_id: str) -> Enrollment | None:
        for enrollment in self.enrollments:
            if enrollment.batch_id == batch_id:
                return enrollment
        return None


@dataclass(frozen=True)
class Batch:
    """A recurring class group taught by (at most) one teacher."""

    id: str
    instrument_id: str | None = None
    teacher_id: str | None = None
    recurrence: tuple[RecurrenceSegment, ...] = ()
    capacity: int = 1

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"Batch {self.id} capacity must be at least 1")

    @property
    def recurrence_text(self) -> str:
        """Legacy string encoding, kept for persistence compatibility."""
        return ", ".join(str(segment) for segment in self.recurrence)


# ---------------------------------------------------------------------------
# Facts: payments and attendance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentRecord:
    """A payment as recorded. Financial fields never change after creation."""

    student_id: str
    amount: Money
    timestamp: datetime
    id: str | None = None
    batch_id: str | None = None
    method: str | None = None
    payment_frequency: PaymentFrequency = PaymentFrequency.UNKNOWN
    payment_for: str | None = None
    notes: str | None = None

    @property
    def payment_date(self) -> date:
        return self.timestamp.date()


@dataclass(frozen=True)
class AttendanceRecord:
    student_id: str
    batch_id: str
    session_date: date
    status: AttendanceStatus

    @property
    def key(self) -> tuple[str, str, date]:
        return (self.student_id, self.batch_id, self.session_date)


@dataclass(frozen=True)
class TeacherAttendanceRecord:
    """Whether a session of a batch was held.

    ``unscheduled_reason`` is set for makeup, extra and trial sessions on
    dates the batch's recurrence does not cover.
    """

    batch_id: str
    session_date: date
    status: SessionStatus
    teacher_id: str | None = None
    notes: str | None = None
    unscheduled_reason: UnscheduledReason | None = None

    @property
    def key(self) -> tuple[str, date]:
        return (self.batch_id, self.session_date)

    @property
    def is_unscheduled(self) -> bool:
        return self.unscheduled_reason is not None


# ---------------------------------------------------------------------------
# Teachers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Teacher:
    id: str
    rate: Money
    name: str = ""
    payout_type: PayoutModel = PayoutModel.UNKNOWN
    is_active: bool = True


@dataclass(frozen=True)
class TeacherPayoutRecord:
    """A payout actually made to a teacher."""

    teacher_id: str
    amount: Money
    created_at: datetime
    id: str | None = None
    method: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    linked_classes_count: int | None = None

    @property
    def period(self) -> MonthKey:
        return MonthKey.of(self.period_start or self.created_at)


# ---------------------------------------------------------------------------
# Finance planning artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Expense:
    category: str
    amount: Money
    date: date
    notes: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class Budget:
    """Revenue target and per-category expense limits for one month."""

    month: MonthKey
    revenue_target: Money
    expense_limits: tuple[tuple[str, Money], ...] = ()

    @property
    def limits(self) -> dict[str, Money]:
        return dict(self.expense_limits)


# Fee used for any schedule field the school never priced.
MISSING_FEE_AMOUNT = Decimal("0")


@dataclass(frozen=True)
class FeeSchedule:
    """Per-instrument prices by payment frequency."""

    monthly: Money
    quarterly: Money
    half_yearly: Money | None = None
    yearly: Money | None = None

    @classmethod
    def zero(cls, currency: Currency | str) -> FeeSchedule:
        amount = Money.of(MISSING_FEE_AMOUNT, currency)
        return cls(monthly=amount, quarterly=amount)


@dataclass(frozen=True)
class FeeStructure:
    """Instrument id -> FeeSchedule, with a zero schedule for unknown ids."""

    currency: Currency
    schedules: tuple[tuple[str, FeeSchedule], ...] = ()

    def for_instrument(self, instrument_id: str | None) -> FeeSchedule:
        if instrument_id is not None:
            for key, schedule in self.schedules:
                if key == instrument_id:
                    return schedule
        return FeeSchedule.zero(self.currency)

    def has_instrument(self, instrument_id: str | None) -> bool:
        return any(key == instrument_id for key, _ in self.schedules)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchoolSnapshot:
    """One committed read of every fact the engine needs."""

    currency: Currency
    students: tuple[Student, ...] = ()
    batches: tuple[Batch, ...] = ()
    payments: tuple[PaymentRecord, ...] = ()
    attendance: tuple[AttendanceRecord, ...] = ()
    teacher_attendance: tuple[TeacherAttendanceRecord, ...] = ()
    teachers: tuple[Teacher, ...] = ()
    teacher_payouts: tuple[TeacherPayoutRecord, ...] = ()
    expenses: tuple[Expense, ...] = ()
    budgets: tuple[Budget, ...] = ()
    fees: FeeStructure | None = None
    snapshot_id: str | None = None

    @property
    def fee_structure(self) -> FeeStructure:
        return self.fees if self.fees is not None else FeeStructure(currency=self.currency)

    def student(self, student_id: str) -> Student | None:
        return next((s for s in self.students if s.id == student_id), None)

    def teacher(self, teacher_id: str) -> Teacher | None:
        return next((t for t in self.teachers if t.id == teacher_id), None)

    def batch(self, batch_id: str) -> Batch | None:
        return next((b for b in self.batches if b.id == batch_id), None)
