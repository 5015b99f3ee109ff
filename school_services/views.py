"""
View-models produced by ``DashboardService``.

Frozen dataclasses wrapping engine results in the shapes the dashboard
screens consume.  ``to_dict()`` renders each one to plain JSON-safe data:

- Money -> amount string rounded to the currency's places
- Decimal -> str (preserving precision)
- date -> ISO format string
- Enum -> .value
- tuples -> lists
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import TeacherPayoutRecord
from school_kernel.domain.values import Money
from school_engines.attendance_reconciler import (
    MonthlyAttendanceRow,
    RosterEntry,
    TeacherAttendanceSummary,
)
from school_engines.budget import BudgetComparison
from school_engines.credit_ledger import EnrollmentStatus, StudentCreditStatus
from school_engines.payout import ProjectedPayout
from school_engines.revenue import MonthlyFinanceSummary


def render(obj: Any) -> Any:
    """Convert a value to plain data for JSON serialization."""
    if obj is None:
        return None
    if isinstance(obj, Money):
        return str(obj.round().amount)
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, MonthKey):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    return obj


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


def _enrollment_dict(status: EnrollmentStatus) -> dict[str, Any]:
    return {
        "batch_id": status.batch_id,
        "payment_frequency": status.payment_frequency.value,
        "classes_remaining": status.classes_remaining,
        "balance": status.balance.balance,
        "is_overdue": status.is_overdue,
        "expected_start_date": render(status.expected_start_date),
    }


@dataclass(frozen=True)
class StudentStatusView:
    """Per-student credit state, aggregated and per enrollment."""

    status: StudentCreditStatus

    @property
    def student_id(self) -> str:
        return self.status.student_id

    @property
    def classes_remaining(self) -> int:
        return self.status.classes_remaining

    @property
    def is_overdue(self) -> bool:
        return self.status.is_overdue

    @property
    def expected_start_date(self) -> date | None:
        return self.status.expected_start_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "classes_remaining": self.classes_remaining,
            "is_overdue": self.is_overdue,
            "expected_start_date": render(self.expected_start_date),
            "enrollments": [_enrollment_dict(e) for e in self.status.enrollments],
        }


# ---------------------------------------------------------------------------
# Teachers
# ---------------------------------------------------------------------------


def _row_dict(row: MonthlyAttendanceRow) -> dict[str, Any]:
    return {
        "month": str(row.month),
        "expected": row.expected,
        "conducted": row.conducted,
        "delta": row.delta,
        "band": row.band.value,
    }


def _payout_dict(payout: ProjectedPayout) -> dict[str, Any]:
    return {
        "amount": render(payout.amount),
        "basis": {
            "label": payout.basis.label,
            "student_count": payout.basis.student_count,
            "rate": render(payout.basis.rate),
        },
        "model": payout.model.value,
    }


def _history_dict(record: TeacherPayoutRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "amount": render(record.amount),
        "method": record.method,
        "period": str(record.period),
        "period_start": render(record.period_start),
        "period_end": render(record.period_end),
        "linked_classes_count": record.linked_classes_count,
        "created_at": render(record.created_at),
    }


@dataclass(frozen=True)
class TeacherOverview:
    """Attendance compliance, projected payout and payout history for one teacher."""

    teacher_id: str
    monthly_breakdown: tuple[MonthlyAttendanceRow, ...]
    summary: TeacherAttendanceSummary
    projected_payout: ProjectedPayout
    payout_history: tuple[TeacherPayoutRecord, ...]
    total_paid: Money

    def to_dict(self) -> dict[str, Any]:
        return {
            "teacher_id": self.teacher_id,
            "monthly_breakdown": [_row_dict(r) for r in self.monthly_breakdown],
            "summary": {
                "total_sessions_conducted": self.summary.total_sessions_conducted,
                "current_month_sessions": self.summary.current_month_sessions,
                "current_month_expected": self.summary.current_month_expected,
                "current_month_rate": render(self.summary.current_month_rate),
            },
            "projected_payout": _payout_dict(self.projected_payout),
            "payout_history": [_history_dict(p) for p in self.payout_history],
            "total_paid": render(self.total_paid),
        }


@dataclass(frozen=True)
class RosterView:
    """Batches scheduled on one date and whether each has been marked."""

    session_date: date
    entries: tuple[RosterEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.session_date.isoformat(),
            "batches": [
                {
                    "batch_id": e.batch.id,
                    "teacher_id": e.batch.teacher_id,
                    "recurrence": e.batch.recurrence_text,
                    "status": render(e.status),
                    "notes": e.mark.notes if e.mark is not None else None,
                }
                for e in self.entries
            ],
        }


# ---------------------------------------------------------------------------
# Finance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthlyFinanceView:
    summary: MonthlyFinanceSummary

    def to_dict(self) -> dict[str, Any]:
        s = self.summary
        return {
            "month": str(s.month),
            "realRevenue": render(s.real_revenue),
            "projectedRevenue": render(s.projected_revenue),
            "teacherExpense": render(s.teacher_expense),
            "fixedCosts": render(s.fixed_costs),
            "totalExpenses": render(s.total_expenses),
            "projectedProfit": render(s.projected_profit),
            "realizedProfit": render(s.realized_profit),
        }


@dataclass(frozen=True)
class BudgetComparisonView:
    comparison: BudgetComparison

    def to_dict(self) -> dict[str, Any]:
        c = self.comparison
        return {
            "month": str(c.month),
            "revenue": {
                "budgeted": render(c.revenue.budgeted),
                "actual": render(c.revenue.actual),
                "variance": render(c.revenue.variance),
            },
            "expenses": [
                {
                    "category": line.category,
                    "budgeted": render(line.budgeted),
                    "actual": render(line.actual),
                    "variance": render(line.variance),
                    "percent": line.percent,
                }
                for line in c.expenses
            ],
        }
