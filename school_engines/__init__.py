"""
Module: school_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for
    ``school_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import school_kernel (and sibling engine modules).
    MUST NOT import school_services or school_config.

Invariants enforced:
    - Purity: engines never read the clock.  The reference date is always
      passed in by the caller.
    - Decimal-only arithmetic: all monetary amounts are ``Money``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` (see
    ``school_engines.tracer``) and emit SCHOOL_ENGINE_TRACE log records.

Usage:
    from school_engines import credit_balance, monthly_breakdown
    from school_engines import projected_payout, monthly_summary, compare
"""

from school_kernel.logging_config import get_logger

logger = get_logger("engines")

from school_engines.attendance_reconciler import (
    ComplianceBand,
    MonthlyAttendanceRow,
    RosterEntry,
    TeacherAttendanceSummary,
    band_for,
    conducted_sessions,
    current_month_rate,
    daily_roster,
    monthly_breakdown,
    scheduled_batches,
    teacher_batches,
    teacher_summary,
    unscheduled_mark,
)
from school_engines.budget import (
    BudgetComparison,
    BudgetVariance,
    ExpenseLine,
    RevenueLine,
    budget_variance,
    compare,
    select_budget,
)
from school_engines.credit_ledger import (
    CREDITS_PER_FREQUENCY,
    UNKNOWN_FREQUENCY_CREDITS,
    AttendanceSummary,
    CreditBalance,
    CreditLedger,
    EnrollmentStatus,
    StudentCreditStatus,
    classes_remaining,
    credit_balance,
    credits_for_frequency,
    due_date,
    expected_start_date,
    is_overdue,
)
from school_engines.payout import (
    PayoutBasis,
    ProjectedPayout,
    active_student_count,
    fixed_payout,
    payout_history,
    per_student_payout,
    projected_payout,
    teacher_payouts_sum,
    total_paid,
)
from school_engines.recurrence import (
    expected_session_count,
    format_recurrence,
    matches_day,
    normalize_recurrence,
    parse_recurrence,
    sessions_per_week,
)
from school_engines.revenue import (
    MonthlyFinanceSummary,
    finance_series,
    fixed_expenses_sum,
    monthly_summary,
    projected_revenue,
    realized_revenue,
)
from school_engines.tracer import traced_engine

__all__ = [
    # Recurrence
    "parse_recurrence",
    "format_recurrence",
    "normalize_recurrence",
    "expected_session_count",
    "matches_day",
    "sessions_per_week",
    # Credit ledger
    "CREDITS_PER_FREQUENCY",
    "UNKNOWN_FREQUENCY_CREDITS",
    "AttendanceSummary",
    "CreditBalance",
    "CreditLedger",
    "EnrollmentStatus",
    "StudentCreditStatus",
    "classes_remaining",
    "credit_balance",
    "credits_for_frequency",
    "due_date",
    "expected_start_date",
    "is_overdue",
    # Attendance reconciliation
    "ComplianceBand",
    "MonthlyAttendanceRow",
    "RosterEntry",
    "TeacherAttendanceSummary",
    "band_for",
    "conducted_sessions",
    "current_month_rate",
    "daily_roster",
    "monthly_breakdown",
    "scheduled_batches",
    "teacher_batches",
    "teacher_summary",
    "unscheduled_mark",
    # Payout
    "PayoutBasis",
    "ProjectedPayout",
    "active_student_count",
    "fixed_payout",
    "payout_history",
    "per_student_payout",
    "projected_payout",
    "teacher_payouts_sum",
    "total_paid",
    # Revenue
    "MonthlyFinanceSummary",
    "finance_series",
    "fixed_expenses_sum",
    "monthly_summary",
    "projected_revenue",
    "realized_revenue",
    # Budget
    "BudgetComparison",
    "BudgetVariance",
    "ExpenseLine",
    "RevenueLine",
    "budget_variance",
    "compare",
    "select_budget",
    # Tracing
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "modules": [
        "recurrence", "credit_ledger", "attendance_reconciler",
        "payout", "revenue", "budget",
    ],
})
