"""
Tests for the teacher attendance reconciler.

Covers:
- Expected sessions from recurrence, conducted sessions from marks
- Compliance bands
- Unscheduled (extra, compensation, trial) sessions
- Implicit sessions from student attendance
- Current-month summary and daily roster
"""

from datetime import date
from decimal import Decimal

import pytest

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    AttendanceRecord,
    AttendanceStatus,
    Batch,
    SessionStatus,
    TeacherAttendanceRecord,
    UnscheduledReason,
)
from school_kernel.exceptions import InvalidDateRangeError, UnassignedBatchError
from school_engines.attendance_reconciler import (
    NO_EXPECTED_SESSIONS_RATE,
    ComplianceBand,
    band_for,
    conducted_sessions,
    current_month_rate,
    daily_roster,
    monthly_breakdown,
    scheduled_batches,
    teacher_summary,
    unscheduled_mark,
)
from school_engines.recurrence import parse_recurrence

BATCHES = (
    Batch(id="b-mw", teacher_id="t-1", recurrence=parse_recurrence("MON 17:00-18:00, WED 17:00-18:00")),
    Batch(id="b-sat", teacher_id="t-1", recurrence=parse_recurrence("SAT 10:00-11:00")),
    Batch(id="b-other", teacher_id="t-2", recurrence=parse_recurrence("TUE 17:00-18:00")),
)


def _conducted(batch_id: str, day: date, **kwargs) -> TeacherAttendanceRecord:
    return TeacherAttendanceRecord(batch_id, day, SessionStatus.CONDUCTED, **kwargs)


class TestBands:
    @pytest.mark.parametrize("delta, band", [
        (0, ComplianceBand.COMPLIANT),
        (2, ComplianceBand.COMPLIANT),
        (-1, ComplianceBand.ONE_SHORT),
        (-2, ComplianceBand.SHORT),
    ])
    def test_band_for(self, delta, band):
        assert band_for(delta) is band


class TestConductedSessions:
    def test_counts_distinct_batch_dates(self):
        marks = [
            _conducted("b-mw", date(2024, 3, 4)),
            _conducted("b-mw", date(2024, 3, 4)),
            _conducted("b-sat", date(2024, 3, 9)),
        ]
        assert conducted_sessions("t-1", BATCHES, marks) == {
            ("b-mw", date(2024, 3, 4)),
            ("b-sat", date(2024, 3, 9)),
        }

    def test_later_not_conducted_replaces_conducted(self):
        marks = [
            _conducted("b-mw", date(2024, 3, 4)),
            TeacherAttendanceRecord("b-mw", date(2024, 3, 4), SessionStatus.NOT_CONDUCTED),
        ]
        assert conducted_sessions("t-1", BATCHES, marks) == set()

    def test_other_teachers_batches_ignored(self):
        marks = [_conducted("b-other", date(2024, 3, 5))]
        assert conducted_sessions("t-1", BATCHES, marks) == set()

    def test_mark_with_teacher_id_counts_for_substitute(self):
        marks = [_conducted("b-other", date(2024, 3, 5), teacher_id="t-1")]
        assert conducted_sessions("t-1", BATCHES, marks) == {("b-other", date(2024, 3, 5))}

    def test_implicit_sessions_opt_in(self):
        attendance = [AttendanceRecord("stu-1", "b-mw", date(2024, 3, 6), AttendanceStatus.PRESENT)]
        assert conducted_sessions("t-1", BATCHES, [], attendance) == set()
        assert conducted_sessions("t-1", BATCHES, [], attendance, include_implicit=True) == {
            ("b-mw", date(2024, 3, 6)),
        }

    def test_implicit_session_never_overrides_explicit_mark(self):
        day = date(2024, 3, 6)
        marks = [TeacherAttendanceRecord("b-mw", day, SessionStatus.NOT_CONDUCTED)]
        attendance = [AttendanceRecord("stu-1", "b-mw", day, AttendanceStatus.PRESENT)]
        assert conducted_sessions("t-1", BATCHES, marks, attendance, include_implicit=True) == set()


class TestMonthlyBreakdown:
    def test_expected_and_conducted(self):
        marks = [
            _conducted("b-mw", date(2024, 3, d)) for d in (4, 6, 11, 13, 18, 20, 25, 27)
        ] + [_conducted("b-sat", date(2024, 3, d)) for d in (2, 9, 16, 23)]
        rows = monthly_breakdown("t-1", BATCHES, marks, "2024-03", "2024-03")
        assert len(rows) == 1
        row = rows[0]
        # March 2024: 4 Mondays + 4 Wednesdays + 5 Saturdays
        assert row.expected == 13
        assert row.conducted == 12
        assert row.delta == -1
        assert row.band is ComplianceBand.ONE_SHORT

    def test_one_row_per_month(self):
        rows = monthly_breakdown("t-1", BATCHES, [], "2023-12", "2024-02")
        assert [str(r.month) for r in rows] == ["2023-12", "2024-01", "2024-02"]
        assert all(r.conducted == 0 for r in rows)

    def test_reversed_range_raises(self):
        with pytest.raises(InvalidDateRangeError):
            monthly_breakdown("t-1", BATCHES, [], "2024-05", "2024-01")

    def test_unscheduled_mark_adds_conducted_not_expected(self):
        baseline = monthly_breakdown("t-1", BATCHES, [], "2024-03", "2024-03")[0]
        extra = unscheduled_mark("t-1", "b-mw", date(2024, 3, 12), UnscheduledReason.EXTRA, BATCHES)
        after = monthly_breakdown("t-1", BATCHES, [extra], "2024-03", "2024-03")[0]
        assert after.expected == baseline.expected
        assert after.conducted == baseline.conducted + 1

    def test_teacher_without_batches(self):
        row = monthly_breakdown("t-none", BATCHES, [], "2024-03", "2024-03")[0]
        assert (row.expected, row.conducted) == (0, 0)
        assert row.band is ComplianceBand.COMPLIANT

    def test_logs_short_months(self, captured_logs):
        monthly_breakdown("t-1", BATCHES, [], "2024-03", "2024-03")
        record = next(r for r in captured_logs() if r["message"] == "monthly_breakdown_computed")
        assert record["short_months"] == ["2024-03"]


class TestSummary:
    def test_rate_rounds_half_up(self):
        assert current_month_rate(8, 7) == Decimal("88")
        assert current_month_rate(3, 2) == Decimal("67")
        assert current_month_rate(8, 1) == Decimal("13")

    def test_rate_without_expected_sessions(self):
        assert current_month_rate(0, 0) == NO_EXPECTED_SESSIONS_RATE
        assert current_month_rate(0, 3) == Decimal("100")

    def test_rate_can_exceed_hundred(self):
        assert current_month_rate(4, 5) == Decimal("125")

    def test_teacher_summary(self):
        marks = [
            _conducted("b-mw", date(2024, 2, 26)),
            _conducted("b-mw", date(2024, 3, 4)),
            _conducted("b-sat", date(2024, 3, 9)),
        ]
        summary = teacher_summary("t-1", BATCHES, marks, today=date(2024, 3, 12))
        assert summary.total_sessions_conducted == 3
        assert summary.current_month_sessions == 2
        assert summary.current_month_expected == 13
        assert summary.current_month_rate == Decimal("15")


class TestRosterAndUnscheduled:
    def test_scheduled_batches(self):
        # 2024-03-11 is a Monday
        assert [b.id for b in scheduled_batches(BATCHES, date(2024, 3, 11))] == ["b-mw"]
        assert scheduled_batches(BATCHES, date(2024, 3, 12), teacher_id="t-1") == ()

    def test_daily_roster_shows_marks(self):
        marks = [_conducted("b-mw", date(2024, 3, 11))]
        roster = daily_roster(BATCHES, marks, date(2024, 3, 11))
        assert len(roster) == 1
        assert roster[0].is_marked
        assert roster[0].status is SessionStatus.CONDUCTED

        unmarked = daily_roster(BATCHES, marks, date(2024, 3, 13))
        assert not unmarked[0].is_marked
        assert unmarked[0].status is None

    def test_unscheduled_mark_on_unscheduled_day(self):
        # 2024-03-12 is a Tuesday; b-mw does not run
        mark = unscheduled_mark("t-1", "b-mw", date(2024, 3, 12), UnscheduledReason.EXTRA, BATCHES)
        assert mark.status is SessionStatus.CONDUCTED
        assert mark.notes == "Extra Class"
        assert mark.unscheduled_reason is UnscheduledReason.EXTRA
        assert mark.is_unscheduled
        assert mark.teacher_id == "t-1"

    def test_unscheduled_mark_with_notes(self):
        mark = unscheduled_mark(
            "t-1", "b-sat", date(2024, 3, 14), UnscheduledReason.COMPENSATION, BATCHES,
            notes="Holi",
        )
        assert mark.notes == "Compensation Class: Holi"

    def test_reason_from_string(self):
        assert unscheduled_mark("t-1", "b-mw", date(2024, 3, 12), "trial", BATCHES).unscheduled_reason \
            is UnscheduledReason.TRIAL
        assert unscheduled_mark("t-1", "b-mw", date(2024, 3, 12), "whatever", BATCHES).unscheduled_reason \
            is UnscheduledReason.OTHER

    def test_unassigned_batch_rejected(self):
        with pytest.raises(UnassignedBatchError) as exc_info:
            unscheduled_mark("t-1", "b-other", date(2024, 3, 12), UnscheduledReason.EXTRA, BATCHES)
        assert exc_info.value.code == "UNASSIGNED_BATCH"
        assert exc_info.value.session_date == "2024-03-12"

    def test_month_key_accepted(self):
        rows = monthly_breakdown("t-1", BATCHES, [], MonthKey(2024, 1), MonthKey(2024, 1))
        # January 2024: 5 Mondays, 5 Wednesdays, 4 Saturdays
        assert rows[0].expected == 14
