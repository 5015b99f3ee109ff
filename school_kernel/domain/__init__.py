"""
Pure domain layer.

This module contains immutable value objects and snapshot types with NO
dependencies on:
- Storage
- Time/clock (other than the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from school_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from school_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from school_kernel.domain.periods import MonthKey, month_range, trailing_months
from school_kernel.domain.schedule import RecurrenceSegment, Weekday
from school_kernel.domain.snapshots import (
    AttendanceRecord,
    AttendanceStatus,
    Batch,
    Budget,
    Enrollment,
    Expense,
    FeeSchedule,
    FeeStructure,
    PaymentFrequency,
    PaymentRecord,
    PayoutModel,
    SchoolSnapshot,
    SessionStatus,
    Student,
    Teacher,
    TeacherAttendanceRecord,
    TeacherPayoutRecord,
    UnscheduledReason,
)
from school_kernel.domain.values import Currency, Money, sum_money

__all__ = [
    # Value Objects
    "Currency",
    "Money",
    "sum_money",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Periods and schedules
    "MonthKey",
    "month_range",
    "trailing_months",
    "RecurrenceSegment",
    "Weekday",
    # Snapshots
    "AttendanceRecord",
    "AttendanceStatus",
    "Batch",
    "Budget",
    "Enrollment",
    "Expense",
    "FeeSchedule",
    "FeeStructure",
    "PaymentFrequency",
    "PaymentRecord",
    "PayoutModel",
    "SchoolSnapshot",
    "SessionStatus",
    "Student",
    "Teacher",
    "TeacherAttendanceRecord",
    "TeacherPayoutRecord",
    "UnscheduledReason",
]
