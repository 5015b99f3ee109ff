"""
Module: school_engines.payout
Responsibility:
    Project what a teacher is owed for a month from their payout model,
    and total what has actually been paid out.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``fixed`` projects the teacher's rate, independent of attendance
      and enrollment.
    - ``per_student_monthly`` projects ``rate x active_student_count``
      where a student enrolled in several of the teacher's batches counts
      once.
    - Unknown payout models project zero with an empty basis label.
    - The basis is structured (label, student_count, rate) so the numeric
      inputs can be checked independently of the display string.

Failure modes:
    - CurrencyMismatchError if payout records mix currencies.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    Batch,
    PayoutModel,
    Student,
    Teacher,
    TeacherPayoutRecord,
)
from school_kernel.domain.values import Currency, Money, sum_money
from school_kernel.logging_config import get_logger
from school_engines.attendance_reconciler import teacher_batches
from school_engines.tracer import traced_engine

logger = get_logger("engines.payout")

FIXED_BASIS_LABEL = "Fixed monthly salary"
UNKNOWN_MODEL_BASIS_LABEL = ""


@dataclass(frozen=True)
class PayoutBasis:
    """The numbers a projected payout was computed from."""

    label: str
    rate: Money
    student_count: int | None = None


@dataclass(frozen=True)
class ProjectedPayout:
    teacher_id: str
    amount: Money
    basis: PayoutBasis
    model: PayoutModel


def _format_rate(rate: Money) -> str:
    amount = rate.amount
    if amount == amount.to_integral_value():
        text = str(amount.quantize(Decimal("1")))
    else:
        text = str(amount.normalize())
    return f"{rate.currency.symbol}{text}"


def active_student_count(
    teacher_id: str,
    batches: Sequence[Batch],
    students: Iterable[Student],
) -> int:
    """Distinct active students with an active enrollment in the teacher's batches."""
    assigned = {b.id for b in teacher_batches(teacher_id, batches)}
    return sum(
        1
        for student in students
        if student.is_active
        and any(e.batch_id in assigned for e in student.active_enrollments)
    )


def fixed_payout(teacher: Teacher) -> Money:
    return teacher.rate


def per_student_payout(
    teacher: Teacher,
    batches: Sequence[Batch],
    students: Sequence[Student],
) -> Money:
    return teacher.rate * active_student_count(teacher.id, batches, students)


@traced_engine("payout", "1.0", fingerprint_fields=("teacher",))
def projected_payout(
    teacher: Teacher,
    batches: Sequence[Batch],
    students: Sequence[Student],
) -> ProjectedPayout:
    """Dispatch on the teacher's payout model."""
    if teacher.payout_type is PayoutModel.FIXED:
        return ProjectedPayout(
            teacher_id=teacher.id,
            amount=fixed_payout(teacher),
            basis=PayoutBasis(label=FIXED_BASIS_LABEL, rate=teacher.rate),
            model=PayoutModel.FIXED,
        )

    if teacher.payout_type is PayoutModel.PER_STUDENT_MONTHLY:
        count = active_student_count(teacher.id, batches, students)
        return ProjectedPayout(
            teacher_id=teacher.id,
            amount=teacher.rate * count,
            basis=PayoutBasis(
                label=f"{count} students × {_format_rate(teacher.rate)}",
                rate=teacher.rate,
                student_count=count,
            ),
            model=PayoutModel.PER_STUDENT_MONTHLY,
        )

    logger.warning("unknown_payout_model", extra={
        "teacher_id": teacher.id,
        "payout_type": teacher.payout_type.value,
    })
    return ProjectedPayout(
        teacher_id=teacher.id,
        amount=Money.zero(teacher.rate.currency),
        basis=PayoutBasis(label=UNKNOWN_MODEL_BASIS_LABEL, rate=teacher.rate),
        model=PayoutModel.UNKNOWN,
    )


def teacher_payouts_sum(
    teachers: Iterable[Teacher],
    batches: Sequence[Batch],
    students: Sequence[Student],
    currency: Currency | str,
) -> Money:
    """Projected monthly payouts summed over active teachers."""
    return sum_money(
        (
            projected_payout(t, batches, students).amount.clamped()
            for t in teachers
            if t.is_active
        ),
        currency,
    )


def payout_history(
    payouts: Iterable[TeacherPayoutRecord],
    teacher_id: str,
    limit: int | None = None,
) -> tuple[TeacherPayoutRecord, ...]:
    """A teacher's payouts, newest first."""
    history = sorted(
        (p for p in payouts if p.teacher_id == teacher_id),
        key=lambda p: p.created_at,
        reverse=True,
    )
    if limit is not None:
        history = history[:limit]
    return tuple(history)


def total_paid(
    payouts: Iterable[TeacherPayoutRecord],
    currency: Currency | str,
    month: MonthKey | None = None,
) -> Money:
    """Sum of payouts made, optionally restricted to one payout period."""
    return sum_money(
        (
            p.amount.clamped()
            for p in payouts
            if month is None or p.period == month
        ),
        currency,
    )
