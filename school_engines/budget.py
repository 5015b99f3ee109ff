"""
Module: school_engines.budget
Responsibility:
    Diff a month's actual revenue and expenses against its stored budget.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``variance = actual - budgeted`` for revenue and for every expense
      line.
    - ``percent = round(actual / budgeted * 100)`` (half up) when
      ``budgeted > 0``, else ``ZERO_BUDGET_PERCENT`` (0).  Never NaN or
      infinite.
    - Expense categories are the union of budgeted and actual categories,
      so unbudgeted spending stays visible.
    - At most one budget per month: the last one supplied wins.

Failure modes:
    - CurrencyMismatchError when budget and actual amounts differ in
      currency.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import Budget, Expense
from school_kernel.domain.values import Currency, Money
from school_kernel.logging_config import get_logger
from school_engines.revenue import expenses_by_category
from school_engines.tracer import traced_engine

logger = get_logger("engines.budget")

ZERO_BUDGET_PERCENT = 0

# Category under which projected teacher payouts are reported.
TEACHER_PAYOUTS_CATEGORY = "Teacher Payouts"


@dataclass(frozen=True)
class BudgetVariance:
    variance: Money
    percent: int


def budget_variance(actual: Money, budgeted: Money) -> BudgetVariance:
    """Variance and percent-of-budget used."""
    variance = actual - budgeted
    if not budgeted.is_positive:
        return BudgetVariance(variance=variance, percent=ZERO_BUDGET_PERCENT)
    ratio = actual.amount * Decimal(100) / budgeted.amount
    percent = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return BudgetVariance(variance=variance, percent=percent)


@dataclass(frozen=True)
class RevenueLine:
    budgeted: Money
    actual: Money

    @property
    def variance(self) -> Money:
        return self.actual - self.budgeted


@dataclass(frozen=True)
class ExpenseLine:
    category: str
    budgeted: Money
    actual: Money

    @property
    def variance(self) -> Money:
        return budget_variance(self.actual, self.budgeted).variance

    @property
    def percent(self) -> int:
        return budget_variance(self.actual, self.budgeted).percent

    @property
    def is_unbudgeted(self) -> bool:
        return self.budgeted.is_zero and self.actual.is_positive


@dataclass(frozen=True)
class BudgetComparison:
    """
    Revenue and per-category expense comparison for one month.

    Contract:
        ``expenses`` lists every category budgeted or spent in the month,
        sorted by name.
    Non-goals:
        - Does not judge whether a variance is good or bad; the sign is
          always ``actual - budgeted``.
    """

    month: MonthKey
    revenue: RevenueLine
    expenses: tuple[ExpenseLine, ...]
    has_budget: bool

    @property
    def total_expense_variance(self) -> Money:
        total = Money.zero(self.revenue.budgeted.currency)
        for line in self.expenses:
            total = total + line.variance
        return total

    def line(self, category: str) -> ExpenseLine | None:
        return next((e for e in self.expenses if e.category == category), None)


def select_budget(budgets: Iterable[Budget], month: MonthKey | str) -> Budget | None:
    """The last budget written for ``month``, if any."""
    key = MonthKey.parse(month)
    selected = None
    for budget in budgets:
        if budget.month == key:
            selected = budget
    return selected


def empty_budget(month: MonthKey | str, currency: Currency | str) -> Budget:
    return Budget(month=MonthKey.parse(month), revenue_target=Money.zero(currency))


@traced_engine("budget", "1.0", fingerprint_fields=("month",))
def compare(
    budget: Budget | None,
    month: MonthKey | str,
    expenses: Iterable[Expense],
    actual_revenue: Money,
    teacher_expense: Money | None = None,
) -> BudgetComparison:
    """Compare ``month``'s actuals with ``budget`` (zero budget when None).

    When ``teacher_expense`` is given it is reported as the
    ``TEACHER_PAYOUTS_CATEGORY`` actual.
    """
    key = MonthKey.parse(month)
    currency = actual_revenue.currency
    effective = budget if budget is not None else empty_budget(key, currency)

    actuals: dict[str, Money] = {}
    if teacher_expense is not None:
        actuals[TEACHER_PAYOUTS_CATEGORY] = teacher_expense.clamped()
    for category, amount in expenses_by_category(expenses, key, currency).items():
        actuals[category] = actuals.get(category, Money.zero(currency)) + amount

    limits: Mapping[str, Money] = effective.limits
    categories = sorted(set(limits) | set(actuals))
    zero = Money.zero(currency)
    lines = tuple(
        ExpenseLine(
            category=category,
            budgeted=limits.get(category, zero),
            actual=actuals.get(category, zero),
        )
        for category in categories
    )

    unbudgeted = [line.category for line in lines if line.is_unbudgeted]
    if unbudgeted:
        logger.info("unbudgeted_categories", extra={
            "month": str(key),
            "categories": unbudgeted,
        })

    return BudgetComparison(
        month=key,
        revenue=RevenueLine(budgeted=effective.revenue_target, actual=actual_revenue),
        expenses=lines,
        has_budget=budget is not None,
    )
