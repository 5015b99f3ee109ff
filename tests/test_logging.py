"""
Tests for structured logging: JSON records, LogContext, configuration.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from school_kernel.domain.snapshots import PaymentFrequency
from school_kernel.domain.values import Money
from school_kernel.exceptions import InvalidDateRangeError, MissingSnapshotError
from school_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test configures logging itself; the suite configuration is restored after."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def records():
    """Configure logging into a buffer; calling the fixture returns parsed records."""
    stream = StringIO()
    configure_logging(stream=stream)

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


class TestRecordShape:
    def test_core_fields(self, records):
        get_logger("engines.credit_ledger").info("credit_balance_computed")

        (record,) = records()
        assert record["message"] == "credit_balance_computed"
        assert record["level"] == "INFO"
        assert record["logger"] == "school_kernel.engines.credit_ledger"
        assert record["ts"].endswith("+00:00")

    def test_extra_payload_is_top_level(self, records):
        get_logger("test").info("student_overdue", extra={
            "student_id": "stu-1", "classes_remaining": 1, "overdue_batches": ("b-1",),
        })

        (record,) = records()
        assert record["student_id"] == "stu-1"
        assert record["classes_remaining"] == 1
        assert record["overdue_batches"] == ["b-1"]

    def test_domain_values_rendered(self, records):
        get_logger("test").info("values", extra={
            "as_of": date(2024, 3, 12),
            "rate": Decimal("83.50"),
            "frequency": PaymentFrequency.QUARTERLY,
            "fee": Money.of("6000", "INR"),
        })

        (record,) = records()
        assert record["as_of"] == "2024-03-12"
        assert record["rate"] == "83.50"
        assert record["frequency"] == "quarterly"
        assert record["fee"] == "6000 INR"

    def test_debug_dropped_at_default_level(self, records):
        logger = get_logger("test")
        logger.debug("noise")
        logger.warning("fallback_used", extra={"fallback": "zero_fee"})

        assert [r["message"] for r in records()] == ["fallback_used"]


class TestExceptionFields:
    def test_plain_exception(self, records):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").exception("failed")

        (record,) = records()
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "Traceback" in record["traceback"]
        assert "exc_code" not in record

    def test_kernel_error_code_and_fields(self, records):
        try:
            raise InvalidDateRangeError("2024-05", "2024-01")
        except InvalidDateRangeError:
            get_logger("test").error("range_error", exc_info=True)

        (record,) = records()
        assert record["exc_code"] == "INVALID_DATE_RANGE"
        assert record["exc_start"] == "2024-05"
        assert record["exc_end"] == "2024-01"

    def test_missing_snapshot_error(self, records):
        try:
            raise MissingSnapshotError("payments")
        except MissingSnapshotError:
            get_logger("test").error("snapshot_rejected", exc_info=True)

        (record,) = records()
        assert record["exc_code"] == "MISSING_SNAPSHOT"
        assert record["exc_name"] == "payments"


class TestLogContext:
    def test_context_on_every_record(self, records):
        LogContext.set(snapshot_id="snap-1", teacher_id="t-1")
        logger = get_logger("test")
        logger.info("first")
        logger.info("second")

        for record in records():
            assert record["snapshot_id"] == "snap-1"
            assert record["teacher_id"] == "t-1"

    def test_absent_when_unset(self, records):
        get_logger("test").info("bare")
        (record,) = records()
        assert not {"snapshot_id", "student_id", "teacher_id"} & set(record)

    def test_context_wins_over_extra(self, records):
        LogContext.set(student_id="stu-ctx")
        get_logger("test").info("clash", extra={"student_id": "stu-extra"})
        assert records()[0]["student_id"] == "stu-ctx"

    def test_set_ignores_none(self):
        LogContext.set(correlation_id="req-1")
        LogContext.set(correlation_id=None, student_id="stu-1")
        assert LogContext.get_all() == {"correlation_id": "req-1", "student_id": "stu-1"}

    def test_clear(self):
        LogContext.set(actor_id="admin")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        with LogContext.bind(snapshot_id="snap-a", teacher_id="t-1"):
            with LogContext.bind(teacher_id="t-2"):
                assert LogContext.get_all() == {"snapshot_id": "snap-a", "teacher_id": "t-2"}
            assert LogContext.get_all()["teacher_id"] == "t-1"
        assert LogContext.get_all() == {}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(student_id="stu-1"):
                raise RuntimeError("inside")
        assert "student_id" not in LogContext.get_all()

    def test_bind_skips_none(self):
        with LogContext.bind(snapshot_id=None, student_id="stu-9"):
            assert LogContext.get_all() == {"student_id": "stu-9"}


class TestConfigureLogging:
    def test_only_first_call_applies(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        root = logging.getLogger("school_kernel")
        assert first in root.handlers
        assert second not in root.handlers
        assert isinstance(first.formatter, StructuredFormatter)
        assert second.formatter is None

    def test_does_not_propagate(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert logging.getLogger("school_kernel").propagate is False

    def test_level_applies_to_children(self):
        stream = StringIO()
        configure_logging(stream=stream, level=logging.DEBUG)
        get_logger("services.dashboard").debug("teacher_overview_computed")
        assert json.loads(stream.getvalue())["logger"] == "school_kernel.services.dashboard"

    def test_reset_allows_reconfigure(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()
        root = logging.getLogger("school_kernel")
        assert not any(type(h) is logging.StreamHandler for h in root.handlers)
        replacement = logging.StreamHandler(StringIO())
        configure_logging(handler=replacement)
        assert replacement in root.handlers
