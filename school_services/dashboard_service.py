"""
school_services.dashboard_service -- One stateless service for every dashboard screen.

Responsibility:
    Composes the pure engines into the view-models the dashboard renders:
    per-student credit status, per-teacher attendance compliance and
    payout, monthly finance figures and budget comparison, and today's
    batch roster.  Every screen computes its numbers here, from an
    explicit snapshot and reference date, instead of recomputing them
    independently.

Architecture position:
    Services -- composition over engines + kernel + config + ingestion.
    The only layer that reads the clock: ``Clock.today()`` is read once
    per call when no reference date is passed, then handed down.

Invariants enforced:
    - Stateless: the service holds only policy and a clock.  Calling any
      method twice with the same snapshot and date yields equal results.
    - No mutation: snapshots are never modified; unscheduled marks are
      returned for the storage layer to persist.

Failure modes:
    - MissingSnapshotError: snapshot is None.
    - InvalidDateRangeError: an explicit month range is reversed.
    - UnassignedBatchError: unscheduled mark against a batch the teacher
      does not teach.

Usage:
    from school_services import DashboardService

    service = DashboardService()
    snapshot = service.load_snapshot(raw).snapshot
    service.student_statuses(snapshot)
    service.monthly_finance(snapshot, "2024-03").to_dict()
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from school_config import get_active_config
from school_config.schema import LedgerPolicy
from school_kernel.domain.clock import Clock, SystemClock
from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    SchoolSnapshot,
    TeacherAttendanceRecord,
    UnscheduledReason,
)
from school_kernel.exceptions import MissingSnapshotError
from school_kernel.logging_config import LogContext, get_logger
from school_engines.attendance_reconciler import (
    daily_roster,
    monthly_breakdown,
    teacher_summary,
    unscheduled_mark,
)
from school_engines.budget import compare, select_budget
from school_engines.credit_ledger import CreditLedger
from school_engines.payout import payout_history, projected_payout, total_paid
from school_engines.revenue import finance_series, monthly_summary
from school_ingestion import SnapshotBuildResult, build_snapshot
from school_services.views import (
    BudgetComparisonView,
    MonthlyFinanceView,
    RosterView,
    StudentStatusView,
    TeacherOverview,
)

logger = get_logger("services.dashboard")

# Payout history entries shown on the teacher screen.
PAYOUT_HISTORY_LIMIT = 24


class DashboardService:
    """
    Stateless facade over the ledger engines.

    Contract:
        Each method takes a ``SchoolSnapshot`` plus an optional reference
        date or month and returns a frozen view-model.
    Guarantees:
        - Policy values (credit table, cadence, thresholds, windows) come
          from the ``LedgerPolicy`` given at construction.
        - All money in a result is in the snapshot's currency.
    Non-goals:
        - Does NOT fetch or persist data.
        - Does NOT enforce authorization.
    """

    def __init__(self, policy: LedgerPolicy | None = None, clock: Clock | None = None):
        self._policy = policy if policy is not None else get_active_config()
        self._clock = clock or SystemClock()
        self._ledger = CreditLedger(
            credit_table=self._policy.credits.table,
            cadence_mode=self._policy.overdue.cadence_mode,
            sessions_per_week=self._policy.overdue.sessions_per_week,
            low_water_mark=self._policy.overdue.low_water_mark,
        )

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    @staticmethod
    def _require(snapshot: SchoolSnapshot | None) -> SchoolSnapshot:
        if snapshot is None:
            raise MissingSnapshotError("snapshot")
        return snapshot

    def _today(self, today: date | None) -> date:
        return today if today is not None else self._clock.today()

    def _month(self, month: MonthKey | str | None) -> MonthKey:
        return MonthKey.parse(month) if month is not None else MonthKey.of(self._clock.today())

    def load_snapshot(
        self,
        raw: Mapping[str, Any] | None,
        snapshot_id: str | None = None,
    ) -> SnapshotBuildResult:
        """Build a snapshot from raw records in the policy's ledger currency."""
        result = build_snapshot(raw, self._policy.currency, snapshot_id=snapshot_id)
        logger.info("snapshot_loaded", extra={
            "snapshot_id": result.snapshot.snapshot_id,
            "currency": self._policy.currency,
            "issue_count": len(result.issues),
        })
        return result

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def student_status(
        self,
        snapshot: SchoolSnapshot,
        student_id: str,
        today: date | None = None,
    ) -> StudentStatusView | None:
        """Credit state of one student; None when the student is unknown."""
        snapshot = self._require(snapshot)
        student = snapshot.student(student_id)
        if student is None:
            return None
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, student_id=student_id):
            status = self._ledger.student_status(
                student,
                snapshot.payments,
                snapshot.attendance,
                self._today(today),
                snapshot.batches,
            )
        return StudentStatusView(status=status)

    def student_statuses(
        self,
        snapshot: SchoolSnapshot,
        today: date | None = None,
        include_inactive: bool = False,
    ) -> tuple[StudentStatusView, ...]:
        snapshot = self._require(snapshot)
        day = self._today(today)
        views = []
        with LogContext.bind(snapshot_id=snapshot.snapshot_id):
            for student in snapshot.students:
                if not student.is_active and not include_inactive:
                    continue
                status = self._ledger.student_status(
                    student, snapshot.payments, snapshot.attendance, day, snapshot.batches,
                )
                views.append(StudentStatusView(status=status))
        logger.info("student_statuses_computed", extra={
            "student_count": len(views),
            "overdue_count": sum(1 for v in views if v.is_overdue),
            "as_of": day,
        })
        return tuple(views)

    # ------------------------------------------------------------------
    # Teachers
    # ------------------------------------------------------------------

    def teacher_overview(
        self,
        snapshot: SchoolSnapshot,
        teacher_id: str,
        today: date | None = None,
        start: MonthKey | str | None = None,
        end: MonthKey | str | None = None,
    ) -> TeacherOverview | None:
        """Compliance breakdown, payout projection and history for a teacher.

        Without an explicit range the breakdown covers the policy's
        ``months_shown`` months ending with the current month.

        Raises:
            InvalidDateRangeError: ``end`` precedes ``start``.
        """
        snapshot = self._require(snapshot)
        teacher = snapshot.teacher(teacher_id)
        if teacher is None:
            return None

        day = self._today(today)
        last = MonthKey.parse(end) if end is not None else MonthKey.of(day)
        first = (
            MonthKey.parse(start) if start is not None
            else last.shift(-(self._policy.compliance.months_shown - 1))
        )
        implicit = self._policy.compliance.include_implicit_sessions

        with LogContext.bind(snapshot_id=snapshot.snapshot_id, teacher_id=teacher_id):
            rows = monthly_breakdown(
                teacher_id,
                snapshot.batches,
                snapshot.teacher_attendance,
                first,
                last,
                student_attendance=snapshot.attendance,
                include_implicit=implicit,
            )
            summary = teacher_summary(
                teacher_id,
                snapshot.batches,
                snapshot.teacher_attendance,
                day,
                student_attendance=snapshot.attendance,
                include_implicit=implicit,
            )
            payout = projected_payout(teacher, snapshot.batches, snapshot.students)
            history = payout_history(
                snapshot.teacher_payouts, teacher_id, limit=PAYOUT_HISTORY_LIMIT,
            )

        return TeacherOverview(
            teacher_id=teacher_id,
            monthly_breakdown=rows,
            summary=summary,
            projected_payout=payout,
            payout_history=history,
            total_paid=total_paid(history, snapshot.currency),
        )

    def todays_batches(
        self,
        snapshot: SchoolSnapshot,
        on_date: date | None = None,
        teacher_id: str | None = None,
    ) -> RosterView:
        """Batches scheduled on a date (default today) with their marks."""
        snapshot = self._require(snapshot)
        day = self._today(on_date)
        entries = daily_roster(
            snapshot.batches, snapshot.teacher_attendance, day, teacher_id,
        )
        return RosterView(session_date=day, entries=entries)

    def record_unscheduled_session(
        self,
        snapshot: SchoolSnapshot,
        teacher_id: str,
        batch_id: str,
        reason: UnscheduledReason | str,
        on_date: date | None = None,
        notes: str | None = None,
    ) -> TeacherAttendanceRecord:
        """Build the ``conducted`` mark for a makeup, extra or trial session.

        The mark is returned, not stored; the caller persists it.

        Raises:
            UnassignedBatchError: the batch is not assigned to the teacher.
        """
        snapshot = self._require(snapshot)
        return unscheduled_mark(
            teacher_id,
            batch_id,
            self._today(on_date),
            reason,
            snapshot.batches,
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Finance
    # ------------------------------------------------------------------

    def monthly_finance(
        self,
        snapshot: SchoolSnapshot,
        month: MonthKey | str | None = None,
    ) -> MonthlyFinanceView:
        snapshot = self._require(snapshot)
        summary = monthly_summary(
            self._month(month),
            snapshot.currency,
            snapshot.payments,
            snapshot.students,
            snapshot.fee_structure,
            snapshot.teachers,
            snapshot.batches,
            snapshot.expenses,
        )
        return MonthlyFinanceView(summary=summary)

    def finance_series(
        self,
        snapshot: SchoolSnapshot,
        center: MonthKey | str | None = None,
    ) -> tuple[MonthlyFinanceView, ...]:
        """Finance figures for the policy's window around ``center``."""
        snapshot = self._require(snapshot)
        summaries = finance_series(
            self._month(center),
            snapshot.currency,
            snapshot.payments,
            snapshot.students,
            snapshot.fee_structure,
            snapshot.teachers,
            snapshot.batches,
            snapshot.expenses,
            months_back=self._policy.finance.months_back,
            months_forward=self._policy.finance.months_forward,
        )
        return tuple(MonthlyFinanceView(summary=s) for s in summaries)

    def budget_comparison(
        self,
        snapshot: SchoolSnapshot,
        month: MonthKey | str | None = None,
    ) -> BudgetComparisonView:
        """Budget versus actuals; actual revenue is realized (cash) revenue."""
        snapshot = self._require(snapshot)
        key = self._month(month)
        finance = self.monthly_finance(snapshot, key).summary
        comparison = compare(
            select_budget(snapshot.budgets, key),
            key,
            snapshot.expenses,
            actual_revenue=finance.real_revenue,
            teacher_expense=finance.teacher_expense,
        )
        return BudgetComparisonView(comparison=comparison)

