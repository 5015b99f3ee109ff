"""
Pytest fixtures for the school ledger test suite.

Provides:
- Structured logging configured once per session, with a JSON capture helper
- A deterministic clock pinned to a known date
- The bundled default ledger policy
- A small raw school snapshot shaped like the storage layer's collections
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from school_config import get_active_config
from school_kernel.domain.clock import DeterministicClock
from school_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Reference date for clock-driven tests: a Tuesday.
TODAY = date(2024, 3, 12)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture school_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            credit_balance(...)
            logs = captured_logs()
            assert any(r["message"] == "SCHOOL_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("school_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and policy
# =============================================================================


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock():
    return DeterministicClock.on(TODAY)


@pytest.fixture
def policy():
    return get_active_config()


# =============================================================================
# Raw snapshot
# =============================================================================


@pytest.fixture
def raw_school() -> dict:
    """
    A small school as the storage layer returns it.

    - Two teachers: one fixed salary, one paid per student.
    - Three batches: piano (MON, WED), guitar (TUE, THU), guitar (SAT).
    - Three students; stu-3 sits in both guitar batches.
    """
    return {
        "batches": [
            {
                "id": "b-piano",
                "instrument_id": "piano",
                "teacher_id": "t-fixed",
                "recurrence": "MON 17:00-18:00, WED 17:00-18:00",
                "capacity": 6,
            },
            {
                "id": "b-guitar",
                "instrument_id": "guitar",
                "teacher_id": "t-student",
                "recurrence": "TUE 17:00-18:00, THU 17:00-18:00",
                "capacity": 8,
            },
            {
                "id": "b-guitar-sat",
                "instrument_id": "guitar",
                "teacher_id": "t-student",
                "recurrence": "SAT 10:00-11:00",
                "capacity": 8,
            },
        ],
        "teachers": [
            {"id": "t-fixed", "name": "Asha", "payout_type": "fixed", "rate": "30000"},
            {"id": "t-student", "name": "Ravi", "payout_type": "per_student_monthly", "rate": 500},
        ],
        "students": [
            {
                "id": "stu-1",
                "name": "Meera",
                "batches": [{"batch_id": "b-piano", "payment_frequency": "monthly"}],
            },
            {
                "id": "stu-2",
                "name": "Kabir",
                "batches": [{"batch_id": "b-guitar", "payment_frequency": "quarterly"}],
            },
            {
                "id": "stu-3",
                "name": "Zoya",
                "batches": [
                    {"batch_id": "b-guitar", "payment_frequency": "monthly"},
                    {"batch_id": "b-guitar-sat", "payment_frequency": "monthly"},
                ],
            },
        ],
        "payments": [
            {
                "id": "p-1",
                "student_id": "stu-1",
                "batch_id": "b-piano",
                "amount": "2000",
                "timestamp": "2024-03-01T10:00:00Z",
                "payment_method": "upi",
                "metadata": {"payment_frequency": "monthly"},
            },
            {
                "id": "p-2",
                "student_id": "stu-2",
                "batch_id": "b-guitar",
                "amount": 6000,
                "timestamp": "2024-02-05T09:30:00",
                "metadata": {"payment_type": "quarterly"},
            },
        ],
        "attendance": [
            {"student_id": "stu-1", "batch_id": "b-piano", "session_date": "2024-03-04", "status": "present"},
            {"student_id": "stu-1", "batch_id": "b-piano", "session_date": "2024-03-06", "status": "absent"},
            {"student_id": "stu-1", "batch_id": "b-piano", "session_date": "2024-03-11", "status": "present"},
        ],
        "teacher_attendance": [
            {"batch_id": "b-piano", "session_date": "2024-03-04", "status": "conducted", "teacher_id": "t-fixed"},
            {"batch_id": "b-piano", "session_date": "2024-03-06", "status": "conducted", "teacher_id": "t-fixed"},
            {"batch_id": "b-piano", "session_date": "2024-03-11", "status": "conducted", "teacher_id": "t-fixed"},
        ],
        "teacher_payouts": [
            {
                "id": "tp-1",
                "teacher_id": "t-fixed",
                "amount": "30000",
                "created_at": "2024-02-29T18:00:00Z",
                "method": "bank",
                "period_start": "2024-02-01",
                "period_end": "2024-02-29",
            },
        ],
        "expenses": [
            {"category": "Rent", "amount": "15000", "date": "2024-03-01"},
            {"category": "Utilities", "amount": "2500", "date": "2024-03-08"},
        ],
        "budgets": [
            {
                "month": "2024-03",
                "revenueTarget": 40000,
                "expenseLimits": {"Rent": 15000, "Utilities": 2000, "Teacher Payouts": 35000},
            },
        ],
        "fees": {
            "piano": {"monthly": 2000, "quarterly": 5400},
            "guitar": {"monthly": 2500, "quarterly": 6000},
        },
    }
