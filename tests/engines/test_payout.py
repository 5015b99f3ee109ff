"""
Tests for teacher payout projection and payout history.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    Batch,
    Enrollment,
    PayoutModel,
    Student,
    Teacher,
    TeacherPayoutRecord,
)
from school_kernel.domain.values import Money
from school_engines.payout import (
    FIXED_BASIS_LABEL,
    UNKNOWN_MODEL_BASIS_LABEL,
    active_student_count,
    payout_history,
    projected_payout,
    teacher_payouts_sum,
    total_paid,
)

BATCHES = (
    Batch(id="b-1", teacher_id="t-1"),
    Batch(id="b-2", teacher_id="t-1"),
    Batch(id="b-3", teacher_id="t-2"),
)


def _student(student_id: str, *batch_ids: str, active: bool = True) -> Student:
    return Student(
        id=student_id,
        is_active=active,
        enrollments=tuple(Enrollment(batch_id=b) for b in batch_ids),
    )


def _teacher(model: PayoutModel, rate: str, teacher_id: str = "t-1", active: bool = True) -> Teacher:
    return Teacher(id=teacher_id, rate=Money.of(rate, "INR"), payout_type=model, is_active=active)


def _payout(amount: str, created: datetime, teacher_id: str = "t-1", **kwargs) -> TeacherPayoutRecord:
    return TeacherPayoutRecord(
        teacher_id=teacher_id, amount=Money.of(amount, "INR"), created_at=created, **kwargs,
    )


class TestActiveStudentCount:
    def test_student_in_two_batches_counts_once(self):
        students = [_student("s-1", "b-1", "b-2"), _student("s-2", "b-2")]
        assert active_student_count("t-1", BATCHES, students) == 2

    def test_inactive_students_and_enrollments_excluded(self):
        students = [
            _student("s-1", "b-1", active=False),
            Student(id="s-2", enrollments=(Enrollment(batch_id="b-1", is_active=False),)),
            _student("s-3", "b-3"),
        ]
        assert active_student_count("t-1", BATCHES, students) == 0


class TestProjectedPayout:
    def test_fixed(self):
        payout = projected_payout(_teacher(PayoutModel.FIXED, "30000"), BATCHES, [])
        assert payout.amount == Money.of("30000", "INR")
        assert payout.basis.label == FIXED_BASIS_LABEL
        assert payout.basis.student_count is None
        assert payout.model is PayoutModel.FIXED

    def test_fixed_ignores_enrollment(self):
        students = [_student(f"s-{i}", "b-1") for i in range(5)]
        payout = projected_payout(_teacher(PayoutModel.FIXED, "30000"), BATCHES, students)
        assert payout.amount == Money.of("30000", "INR")

    def test_per_student(self):
        students = [_student(f"s-{i}", "b-1" if i % 2 else "b-2") for i in range(12)]
        payout = projected_payout(_teacher(PayoutModel.PER_STUDENT_MONTHLY, "500"), BATCHES, students)
        assert payout.amount == Money.of("6000", "INR")
        assert payout.basis.student_count == 12
        assert payout.basis.rate == Money.of("500", "INR")
        assert payout.basis.label == "12 students × ₹500"

    def test_per_student_fractional_rate_label(self):
        payout = projected_payout(
            _teacher(PayoutModel.PER_STUDENT_MONTHLY, "499.50"), BATCHES, [_student("s", "b-1")],
        )
        assert payout.basis.label == "1 students × ₹499.5"
        assert payout.amount.amount == Decimal("499.50")

    def test_unknown_model_projects_zero(self, captured_logs):
        payout = projected_payout(_teacher(PayoutModel.UNKNOWN, "800"), BATCHES, [])
        assert payout.amount.is_zero
        assert payout.basis.label == UNKNOWN_MODEL_BASIS_LABEL
        assert any(r["message"] == "unknown_payout_model" for r in captured_logs())

    def test_sum_over_active_teachers(self):
        teachers = [
            _teacher(PayoutModel.FIXED, "30000"),
            _teacher(PayoutModel.PER_STUDENT_MONTHLY, "500", teacher_id="t-2"),
            _teacher(PayoutModel.FIXED, "99999", teacher_id="t-3", active=False),
        ]
        students = [_student("s-1", "b-3"), _student("s-2", "b-3")]
        total = teacher_payouts_sum(teachers, BATCHES, students, "INR")
        assert total == Money.of("31000", "INR")

    def test_sum_without_teachers(self):
        assert teacher_payouts_sum([], BATCHES, [], "INR") == Money.zero("INR")


class TestPayoutHistory:
    def test_newest_first_and_filtered(self):
        older = _payout("100", datetime(2024, 1, 31, tzinfo=timezone.utc))
        newer = _payout("200", datetime(2024, 2, 29, tzinfo=timezone.utc))
        other = _payout("300", datetime(2024, 3, 1, tzinfo=timezone.utc), teacher_id="t-2")
        assert payout_history([older, other, newer], "t-1") == (newer, older)

    def test_limit(self):
        records = [
            _payout("1", datetime(2024, m, 1, tzinfo=timezone.utc)) for m in range(1, 7)
        ]
        history = payout_history(records, "t-1", limit=2)
        assert [r.created_at.month for r in history] == [6, 5]

    def test_total_paid(self):
        records = [
            _payout("100", datetime(2024, 1, 31, tzinfo=timezone.utc)),
            _payout("200", datetime(2024, 3, 1, tzinfo=timezone.utc), period_start=date(2024, 2, 1)),
            _payout("-50", datetime(2024, 3, 2, tzinfo=timezone.utc)),
        ]
        assert total_paid(records, "INR") == Money.of("300", "INR")
        assert total_paid(records, "INR", month=MonthKey(2024, 2)) == Money.of("200", "INR")
        assert total_paid([], "INR") == Money.zero("INR")
