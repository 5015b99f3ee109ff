"""
Tests for snapshot value objects and their parsing helpers.
"""

from datetime import date, datetime, timezone

import pytest

from school_kernel.domain.clock import DeterministicClock
from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    MISSING_FEE_AMOUNT,
    Batch,
    Budget,
    Enrollment,
    FeeSchedule,
    FeeStructure,
    PaymentFrequency,
    PayoutModel,
    SchoolSnapshot,
    Student,
    TeacherPayoutRecord,
    UnscheduledReason,
)
from school_kernel.domain.values import Currency, Money


class TestPaymentFrequency:
    @pytest.mark.parametrize("token, expected", [
        ("monthly", PaymentFrequency.MONTHLY),
        ("Quarterly", PaymentFrequency.QUARTERLY),
        ("half-yearly", PaymentFrequency.HALF_YEARLY),
        ("half yearly", PaymentFrequency.HALF_YEARLY),
        ("semiannual", PaymentFrequency.HALF_YEARLY),
        ("annual", PaymentFrequency.YEARLY),
        ("weekly", PaymentFrequency.UNKNOWN),
        (None, PaymentFrequency.UNKNOWN),
        (8, PaymentFrequency.UNKNOWN),
    ])
    def test_parse(self, token, expected):
        assert PaymentFrequency.parse(token) is expected

    def test_is_known(self):
        assert PaymentFrequency.MONTHLY.is_known
        assert not PaymentFrequency.UNKNOWN.is_known


class TestUnscheduledReason:
    def test_labels(self):
        assert UnscheduledReason.EXTRA.label == "Extra Class"
        assert UnscheduledReason.COMPENSATION.label == "Compensation Class"

    @pytest.mark.parametrize("note, expected", [
        ("Extra Class", UnscheduledReason.EXTRA),
        ("extra", UnscheduledReason.EXTRA),
        ("Trial Class: new student", UnscheduledReason.TRIAL),
        ("Makeup Class", UnscheduledReason.COMPENSATION),
        ("make-up: Diwali", UnscheduledReason.COMPENSATION),
        ("Makeup for Diwali", None),
        ("Extra practice", None),
        ("Other teacher covered", None),
        ("rescheduled", None),
        (None, None),
    ])
    def test_from_note(self, note, expected):
        assert UnscheduledReason.from_note(note) is expected


class TestPayoutModel:
    def test_parse(self):
        assert PayoutModel.parse("FIXED") is PayoutModel.FIXED
        assert PayoutModel.parse("per_student_monthly") is PayoutModel.PER_STUDENT_MONTHLY
        assert PayoutModel.parse("hourly") is PayoutModel.UNKNOWN
        assert PayoutModel.parse(None) is PayoutModel.UNKNOWN


class TestStudentAndBatch:
    def test_active_enrollments(self):
        student = Student(id="s", enrollments=(
            Enrollment(batch_id="a"),
            Enrollment(batch_id="b", is_active=False),
        ))
        assert [e.batch_id for e in student.active_enrollments] == ["a"]
        assert student.enrollment_for("b").is_active is False
        assert student.enrollment_for("z") is None

    def test_batch_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            Batch(id="b", capacity=0)

    def test_batch_without_recurrence_has_empty_text(self):
        assert Batch(id="b").recurrence_text == ""


class TestFees:
    def test_zero_schedule(self):
        schedule = FeeSchedule.zero("INR")
        assert schedule.monthly.amount == MISSING_FEE_AMOUNT
        assert schedule.half_yearly is None

    def test_unknown_instrument_gets_zero_schedule(self):
        fees = FeeStructure(currency=Currency("INR"), schedules=(
            ("piano", FeeSchedule(Money.of(2000, "INR"), Money.of(5400, "INR"))),
        ))
        assert fees.for_instrument("piano").monthly == Money.of(2000, "INR")
        assert fees.for_instrument("drums") == FeeSchedule.zero("INR")
        assert fees.for_instrument(None) == FeeSchedule.zero("INR")
        assert fees.has_instrument("piano")
        assert not fees.has_instrument("drums")


class TestSnapshot:
    def test_lookups(self):
        snapshot = SchoolSnapshot(
            currency=Currency("INR"),
            students=(Student(id="s-1"),),
            batches=(Batch(id="b-1"),),
        )
        assert snapshot.student("s-1").id == "s-1"
        assert snapshot.student("missing") is None
        assert snapshot.batch("b-1").id == "b-1"
        assert snapshot.teacher("t") is None

    def test_default_fee_structure(self):
        snapshot = SchoolSnapshot(currency=Currency("INR"))
        assert snapshot.fee_structure.schedules == ()

    def test_budget_limits(self):
        budget = Budget(
            month=MonthKey(2024, 3),
            revenue_target=Money.of(1, "INR"),
            expense_limits=(("Rent", Money.of(100, "INR")),),
        )
        assert budget.limits == {"Rent": Money.of(100, "INR")}

    def test_payout_period_prefers_period_start(self):
        record = TeacherPayoutRecord(
            teacher_id="t",
            amount=Money.of(1, "INR"),
            created_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
            period_start=date(2024, 2, 1),
        )
        assert record.period == MonthKey(2024, 2)


class TestDeterministicClock:
    def test_on_pins_date(self):
        clock = DeterministicClock.on(date(2024, 3, 12))
        assert clock.today() == date(2024, 3, 12)
        assert clock.now().tzinfo is not None

    def test_advance_days(self):
        clock = DeterministicClock.on(date(2024, 1, 31))
        clock.advance_days(1)
        assert clock.today() == date(2024, 2, 1)
