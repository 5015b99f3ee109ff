"""
Module: school_engines.revenue
Responsibility:
    Monthly revenue, expense and profit figures for the finance dashboard.

    Two revenue bases are produced side by side and never conflated:
      - realized: cash received, by payment timestamp month.
      - projected: accrual of each active enrollment's fee, spread evenly
        over the months its payment frequency covers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Negative amounts count as zero in every aggregate.
    - Missing fee entries use the zero fee schedule and never raise.
    - ``projected_profit`` and ``realized_profit`` are both always
      reported; ``total_expenses = teacher_expense + fixed_costs``.

Failure modes:
    - InvalidDateRangeError from ``finance_series`` with a negative window.
    - CurrencyMismatchError when snapshot amounts mix currencies.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from school_kernel.domain.periods import MonthKey, month_range
from school_kernel.domain.snapshots import (
    Batch,
    Enrollment,
    Expense,
    FeeSchedule,
    FeeStructure,
    PaymentFrequency,
    PaymentRecord,
    Student,
    Teacher,
)
from school_kernel.domain.values import Currency, Money, sum_money
from school_kernel.exceptions import InvalidDateRangeError
from school_kernel.logging_config import get_logger
from school_engines.payout import teacher_payouts_sum
from school_engines.tracer import traced_engine

logger = get_logger("engines.revenue")

# Months in the finance chart before and after the selected month.
DEFAULT_MONTHS_BACK = 6
DEFAULT_MONTHS_FORWARD = 5

# Months of service one payment of each frequency pays for.
ACCRUAL_MONTHS: dict[PaymentFrequency, int] = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.HALF_YEARLY: 6,
    PaymentFrequency.YEARLY: 12,
}


def realized_revenue(
    payments: Iterable[PaymentRecord],
    month: MonthKey | str,
    currency: Currency | str,
) -> Money:
    """Cash received in ``month``."""
    key = MonthKey.parse(month)
    return sum_money(
        (p.amount.clamped() for p in payments if key.contains(p.timestamp)),
        currency,
    )


def monthly_accrual(schedule: FeeSchedule, frequency: PaymentFrequency) -> Money:
    """What one month of an enrollment at ``frequency`` is worth.

    Frequencies without a priced fee, and unknown frequencies, accrue the
    monthly fee.
    """
    if frequency is PaymentFrequency.QUARTERLY:
        return schedule.quarterly / ACCRUAL_MONTHS[frequency]
    if frequency is PaymentFrequency.HALF_YEARLY and schedule.half_yearly is not None:
        return schedule.half_yearly / ACCRUAL_MONTHS[frequency]
    if frequency is PaymentFrequency.YEARLY and schedule.yearly is not None:
        return schedule.yearly / ACCRUAL_MONTHS[frequency]
    return schedule.monthly


def _accrues_in(enrollment: Enrollment, month: MonthKey) -> bool:
    if not enrollment.is_active:
        return False
    return enrollment.enrolled_on is None or enrollment.enrolled_on <= month.last_day


@traced_engine("revenue", "1.0", fingerprint_fields=("month",))
def projected_revenue(
    students: Sequence[Student],
    fee_structure: FeeStructure,
    month: MonthKey | str,
) -> Money:
    """Accrual-basis revenue for ``month`` from active enrollments."""
    key = MonthKey.parse(month)
    total = Money.zero(fee_structure.currency)
    unpriced: set[str] = set()
    for student in students:
        if not student.is_active:
            continue
        for enrollment in student.enrollments:
            if not _accrues_in(enrollment, key):
                continue
            if not fee_structure.has_instrument(enrollment.instrument_id):
                unpriced.add(str(enrollment.instrument_id))
            schedule = fee_structure.for_instrument(enrollment.instrument_id)
            total = total + monthly_accrual(schedule, enrollment.payment_frequency).clamped()
    if unpriced:
        logger.debug("missing_fee_schedule", extra={
            "month": str(key),
            "instrument_ids": sorted(unpriced),
        })
    return total


def fixed_expenses_sum(
    expenses: Iterable[Expense],
    month: MonthKey | str,
    currency: Currency | str,
) -> Money:
    key = MonthKey.parse(month)
    return sum_money(
        (e.amount.clamped() for e in expenses if key.contains(e.date)),
        currency,
    )


def expenses_by_category(
    expenses: Iterable[Expense],
    month: MonthKey | str,
    currency: Currency | str,
) -> dict[str, Money]:
    """Month's expenses grouped by category, in order of first appearance."""
    key = MonthKey.parse(month)
    totals: dict[str, Money] = {}
    for expense in expenses:
        if not key.contains(expense.date):
            continue
        current = totals.get(expense.category, Money.zero(currency))
        totals[expense.category] = current + expense.amount.clamped()
    return totals


@dataclass(frozen=True)
class MonthlyFinanceSummary:
    """
    One month of the finance dashboard.

    Contract:
        Both profit bases are always exposed.
    Guarantees:
        - ``total_expenses == teacher_expense + fixed_costs``.
        - ``projected_profit == projected_revenue - total_expenses``.
        - ``realized_profit == real_revenue - total_expenses``.
    """

    month: MonthKey
    real_revenue: Money
    projected_revenue: Money
    teacher_expense: Money
    fixed_costs: Money

    @property
    def total_expenses(self) -> Money:
        return self.teacher_expense + self.fixed_costs

    @property
    def projected_profit(self) -> Money:
        return self.projected_revenue - self.total_expenses

    @property
    def realized_profit(self) -> Money:
        return self.real_revenue - self.total_expenses


def monthly_summary(
    month: MonthKey | str,
    currency: Currency | str,
    payments: Sequence[PaymentRecord],
    students: Sequence[Student],
    fee_structure: FeeStructure,
    teachers: Sequence[Teacher],
    batches: Sequence[Batch],
    expenses: Sequence[Expense],
) -> MonthlyFinanceSummary:
    key = MonthKey.parse(month)
    return MonthlyFinanceSummary(
        month=key,
        real_revenue=realized_revenue(payments, key, currency),
        projected_revenue=projected_revenue(students, fee_structure, key),
        teacher_expense=teacher_payouts_sum(teachers, batches, students, currency),
        fixed_costs=fixed_expenses_sum(expenses, key, currency),
    )


def finance_series(
    center: MonthKey | str,
    currency: Currency | str,
    payments: Sequence[PaymentRecord],
    students: Sequence[Student],
    fee_structure: FeeStructure,
    teachers: Sequence[Teacher],
    batches: Sequence[Batch],
    expenses: Sequence[Expense],
    months_back: int = DEFAULT_MONTHS_BACK,
    months_forward: int = DEFAULT_MONTHS_FORWARD,
) -> tuple[MonthlyFinanceSummary, ...]:
    """Summaries for each month from ``center - back`` to ``center + forward``.

    Raises:
        InvalidDateRangeError: either window size is negative.
    """
    key = MonthKey.parse(center)
    if months_back < 0 or months_forward < 0:
        raise InvalidDateRangeError(key.shift(-months_back), key.shift(months_forward))
    return tuple(
        monthly_summary(
            m, currency, payments, students, fee_structure, teachers, batches, expenses,
        )
        for m in month_range(key.shift(-months_back), key.shift(months_forward))
    )
