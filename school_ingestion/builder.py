"""
Snapshot builder: raw storage-layer collections -> immutable SchoolSnapshot.

Responsibility
--------------
Maps each raw JSON-shaped collection (students, batches, payments, student
and teacher attendance, teachers, payouts, fees, expenses, budgets) into
the frozen domain types, once, at the boundary.  Recurrence strings are
parsed into ``RecurrenceSegment`` tuples here and payment frequencies are
normalised here; nothing downstream sees raw strings.

Invariants enforced
-------------------
* Sparse data is tolerated: a record that cannot be mapped is skipped and
  reported as an ``IngestionIssue``; the rest of the snapshot still builds.
* Missing or invalid amounts map to zero (reported); negative amounts are
  kept and clamped by the aggregating engines.
* A payment with no batch is attributed to the student's first active
  enrollment.

Failure modes
-------------
* ``MissingSnapshotError`` when the raw snapshot, or any collection in it,
  is ``None``.  Absent keys are treated as empty collections.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from school_kernel.domain.periods import MonthKey
from school_kernel.domain.snapshots import (
    MISSING_FEE_AMOUNT,
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
from school_kernel.domain.values import Currency, Money
from school_kernel.exceptions import InvalidMonthKeyError, MissingSnapshotError
from school_kernel.logging_config import get_logger
from school_engines.recurrence import parse_recurrence
from school_ingestion.mapping.engine import (
    IngestionIssue,
    coerce_bool,
    coerce_date,
    coerce_datetime,
    coerce_decimal,
    coerce_int,
    coerce_str,
    normalize_payment_frequency,
)

logger = get_logger("ingestion.builder")

COLLECTIONS = (
    "students",
    "batches",
    "payments",
    "attendance",
    "teacher_attendance",
    "teachers",
    "teacher_payouts",
    "expenses",
    "budgets",
)


class _RecordError(Exception):
    """Internal: one raw record could not be mapped."""

    def __init__(self, code: str, message: str, field: str = ""):
        self.code = code
        self.message = message
        self.field = field
        super().__init__(message)


@dataclass(frozen=True)
class SnapshotBuildResult:
    snapshot: SchoolSnapshot
    issues: tuple[IngestionIssue, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.issues


class SnapshotBuilder:
    """
    Builds a ``SchoolSnapshot`` from raw collections.

    Contract:
        ``build()`` never raises for malformed records, only for a missing
        snapshot or collection.
    Guarantees:
        - Every skipped or defaulted record yields exactly one issue.
        - The returned snapshot is fully immutable.
    """

    def __init__(self, currency: Currency | str):
        self._currency = currency if isinstance(currency, Currency) else Currency(currency)
        self._issues: list[IngestionIssue] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue(self, collection: str, index: int, code: str, message: str, field: str = "") -> None:
        self._issues.append(IngestionIssue(
            collection=collection, index=index, code=code, message=message, field=field,
        ))

    def _money(self, value: Any, collection: str, index: int, field: str) -> Money:
        result = coerce_decimal(value)
        if not result.success:
            self._issue(collection, index, result.code, result.message, field)
            return Money.zero(self._currency)
        return Money.of(result.value, self._currency)

    @staticmethod
    def _required_str(raw: Mapping[str, Any], key: str) -> str:
        value = coerce_str(raw.get(key))
        if value is None:
            raise _RecordError("MISSING_VALUE", f"{key} is required", key)
        return value

    @staticmethod
    def _required_date(raw: Mapping[str, Any], key: str) -> date:
        result = coerce_date(raw.get(key))
        if not result.success:
            raise _RecordError(result.code, result.message, key)
        return result.value

    @staticmethod
    def _optional_date(raw: Mapping[str, Any], key: str) -> date | None:
        result = coerce_date(raw.get(key))
        return result.value if result.success else None

    def _map_all(
        self,
        collection: str,
        rows: Sequence[Any],
        mapper: Callable[[Mapping[str, Any], int], Any],
    ) -> tuple:
        mapped = []
        for index, raw in enumerate(rows):
            if not isinstance(raw, Mapping):
                self._issue(collection, index, "INVALID_RECORD", "Record is not an object")
                continue
            try:
                mapped.append(mapper(raw, index))
            except _RecordError as e:
                self._issue(collection, index, e.code, e.message, e.field)
        return tuple(mapped)

    # ------------------------------------------------------------------
    # Record mappers
    # ------------------------------------------------------------------

    def map_batch(self, raw: Mapping[str, Any], index: int) -> Batch:
        batch_id = self._required_str(raw, "id")
        text = raw.get("recurrence") or ""
        start, end = coerce_str(raw.get("start_time")), coerce_str(raw.get("end_time"))
        if start and end:
            text = _apply_default_times(str(text), start[:5], end[:5])
        segments = parse_recurrence(str(text))

        capacity = coerce_int(raw.get("capacity"))
        value = capacity.value if capacity.success else 1
        if value < 1:
            self._issue("batches", index, "INVALID_CAPACITY",
                        f"Capacity {value} raised to 1", "capacity")
            value = 1

        return Batch(
            id=batch_id,
            instrument_id=coerce_str(raw.get("instrument_id")),
            teacher_id=coerce_str(raw.get("teacher_id")),
            recurrence=segments,
            capacity=value,
        )

    def map_student(
        self,
        raw: Mapping[str, Any],
        index: int,
        batches: Mapping[str, Batch] | None = None,
    ) -> Student:
        student_id = self._required_str(raw, "id")
        enrollments = []
        entries = raw.get("batches") or ()
        if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
            self._issue("students", index, "INVALID_RECORD",
                        "Enrollments are not a list; none mapped", "batches")
            entries = ()
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            batch_id = coerce_str(entry.get("batch_id"))
            if batch_id is None:
                self._issue("students", index, "MISSING_VALUE",
                            "Enrollment without batch_id skipped", "batches.batch_id")
                continue
            instrument_id = coerce_str(entry.get("instrument_id"))
            if instrument_id is None and batches and batch_id in batches:
                instrument_id = batches[batch_id].instrument_id
            enrollments.append(Enrollment(
                batch_id=batch_id,
                payment_frequency=PaymentFrequency.parse(entry.get("payment_frequency")),
                instrument_id=instrument_id,
                enrolled_on=self._optional_date(entry, "enrolled_on"),
                is_active=coerce_bool(entry.get("is_active"), default=True)
                and not coerce_bool(entry.get("is_deleted"), default=False),
            ))
        return Student(
            id=student_id,
            name=coerce_str(raw.get("name")) or "",
            phone=coerce_str(raw.get("phone")),
            guardian_contact=coerce_str(raw.get("guardian_contact")),
            is_active=coerce_bool(raw.get("is_active"), default=True),
            enrollments=tuple(enrollments),
        )

    def map_payment(
        self,
        raw: Mapping[str, Any],
        index: int,
        students: Mapping[str, Student] | None = None,
    ) -> PaymentRecord:
        student_id = self._required_str(raw, "student_id")
        timestamp = coerce_datetime(raw.get("timestamp") or raw.get("payment_date"))
        if not timestamp.success:
            raise _RecordError(timestamp.code, timestamp.message, "timestamp")

        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), Mapping) else {}
        batch_id = coerce_str(raw.get("batch_id"))
        if batch_id is None and students and student_id in students:
            active = students[student_id].active_enrollments
            if active:
                batch_id = active[0].batch_id
                logger.debug("payment_batch_attributed", extra={
                    "student_id": student_id,
                    "batch_id": batch_id,
                })

        return PaymentRecord(
            student_id=student_id,
            amount=self._money(raw.get("amount"), "payments", index, "amount"),
            timestamp=timestamp.value,
            id=coerce_str(raw.get("id")),
            batch_id=batch_id,
            method=coerce_str(raw.get("payment_method") or raw.get("method")),
            payment_frequency=normalize_payment_frequency(dict(raw)),
            payment_for=coerce_str(metadata.get("payment_for") or raw.get("payment_for")),
            notes=coerce_str(metadata.get("notes") or raw.get("notes")),
        )

    def map_attendance(self, raw: Mapping[str, Any], index: int) -> AttendanceRecord:
        try:
            status = AttendanceStatus(str(raw.get("status", "")).strip().lower())
        except ValueError as e:
            raise _RecordError("INVALID_STATUS", f"Unknown attendance status: {raw.get('status')!r}", "status") from e
        return AttendanceRecord(
            student_id=self._required_str(raw, "student_id"),
            batch_id=self._required_str(raw, "batch_id"),
            session_date=self._required_date(raw, "session_date"),
            status=status,
        )

    def map_teacher_attendance(self, raw: Mapping[str, Any], index: int) -> TeacherAttendanceRecord:
        try:
            status = SessionStatus(str(raw.get("status", "")).strip().lower())
        except ValueError as e:
            raise _RecordError("INVALID_STATUS", f"Unknown session status: {raw.get('status')!r}", "status") from e
        notes = coerce_str(raw.get("notes"))
        reason_raw = coerce_str(raw.get("unscheduled_reason") or raw.get("reason"))
        reason = None
        if reason_raw is not None:
            try:
                reason = UnscheduledReason(reason_raw.lower())
            except ValueError:
                reason = UnscheduledReason.from_note(reason_raw)
        if reason is None:
            reason = UnscheduledReason.from_note(notes)
        return TeacherAttendanceRecord(
            batch_id=self._required_str(raw, "batch_id"),
            session_date=self._required_date(raw, "session_date"),
            status=status,
            teacher_id=coerce_str(raw.get("teacher_id")),
            notes=notes,
            unscheduled_reason=reason,
        )

    def map_teacher(self, raw: Mapping[str, Any], index: int) -> Teacher:
        rate = self._money(raw.get("rate"), "teachers", index, "rate")
        if rate.is_negative:
            self._issue("teachers", index, "NEGATIVE_RATE", "Negative rate treated as 0", "rate")
            rate = Money.zero(self._currency)
        payout_type = PayoutModel.parse(raw.get("payout_type"))
        if payout_type is PayoutModel.UNKNOWN:
            self._issue("teachers", index, "UNKNOWN_PAYOUT_MODEL",
                        f"Unknown payout_type {raw.get('payout_type')!r}", "payout_type")
        return Teacher(
            id=self._required_str(raw, "id"),
            rate=rate,
            name=coerce_str(raw.get("name")) or "",
            payout_type=payout_type,
            is_active=coerce_bool(raw.get("is_active"), default=True),
        )

    def map_teacher_payout(self, raw: Mapping[str, Any], index: int) -> TeacherPayoutRecord:
        created = coerce_datetime(raw.get("created_at"))
        if not created.success:
            raise _RecordError(created.code, created.message, "created_at")
        linked = coerce_int(raw.get("linked_classes_count"))
        return TeacherPayoutRecord(
            teacher_id=self._required_str(raw, "teacher_id"),
            amount=self._money(raw.get("amount"), "teacher_payouts", index, "amount"),
            created_at=created.value,
            id=coerce_str(raw.get("id")),
            method=coerce_str(raw.get("method")),
            period_start=self._optional_date(raw, "period_start"),
            period_end=self._optional_date(raw, "period_end"),
            linked_classes_count=linked.value if linked.success else None,
        )

    def map_expense(self, raw: Mapping[str, Any], index: int) -> Expense:
        return Expense(
            category=self._required_str(raw, "category"),
            amount=self._money(raw.get("amount"), "expenses", index, "amount"),
            date=self._required_date(raw, "date"),
            notes=coerce_str(raw.get("notes")),
            id=coerce_str(raw.get("id")),
        )

    def map_budget(self, raw: Mapping[str, Any], index: int) -> Budget:
        try:
            month = MonthKey.parse(raw.get("month"))
        except InvalidMonthKeyError as e:
            raise _RecordError(e.code, str(e), "month") from e
        target = raw.get("revenueTarget", raw.get("revenue_target"))
        limits_raw = raw.get("expenseLimits", raw.get("expense_limits")) or {}
        limits = []
        if isinstance(limits_raw, Mapping):
            for category, amount in limits_raw.items():
                limits.append((str(category), self._money(amount, "budgets", index, f"expenseLimits.{category}")))
        return Budget(
            month=month,
            revenue_target=self._money(0 if target is None else target, "budgets", index, "revenueTarget"),
            expense_limits=tuple(limits),
        )

    def map_fees(self, raw: Any) -> FeeStructure:
        schedules = []
        if isinstance(raw, Mapping):
            for instrument_id, entry in raw.items():
                if not isinstance(entry, Mapping):
                    self._issue("fees", 0, "INVALID_RECORD", f"Fee entry for {instrument_id} is not an object")
                    continue
                schedules.append((str(instrument_id), FeeSchedule(
                    monthly=self._fee(entry, "monthly"),
                    quarterly=self._fee(entry, "quarterly"),
                    half_yearly=self._fee(entry, "half_yearly") if entry.get("half_yearly") is not None else None,
                    yearly=self._fee(entry, "yearly") if entry.get("yearly") is not None else None,
                )))
        return FeeStructure(currency=self._currency, schedules=tuple(schedules))

    def _fee(self, entry: Mapping[str, Any], key: str) -> Money:
        result = coerce_decimal(entry.get(key))
        return Money.of(result.value if result.success else MISSING_FEE_AMOUNT, self._currency)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def build(self, raw: Mapping[str, Any] | None, snapshot_id: str | None = None) -> SnapshotBuildResult:
        if raw is None:
            raise MissingSnapshotError("snapshot")
        for name in (*COLLECTIONS, "fees"):
            if name in raw and raw[name] is None:
                raise MissingSnapshotError(name)

        self._issues = []
        batches = self._map_all("batches", raw.get("batches", ()), self.map_batch)
        batch_index = {b.id: b for b in batches}
        students = self._map_all(
            "students", raw.get("students", ()),
            lambda r, i: self.map_student(r, i, batch_index),
        )
        student_index = {s.id: s for s in students}

        snapshot = SchoolSnapshot(
            currency=self._currency,
            students=students,
            batches=batches,
            payments=self._map_all(
                "payments", raw.get("payments", ()),
                lambda r, i: self.map_payment(r, i, student_index),
            ),
            attendance=self._map_all("attendance", raw.get("attendance", ()), self.map_attendance),
            teacher_attendance=self._map_all(
                "teacher_attendance", raw.get("teacher_attendance", ()), self.map_teacher_attendance,
            ),
            teachers=self._map_all("teachers", raw.get("teachers", ()), self.map_teacher),
            teacher_payouts=self._map_all(
                "teacher_payouts", raw.get("teacher_payouts", ()), self.map_teacher_payout,
            ),
            expenses=self._map_all("expenses", raw.get("expenses", ()), self.map_expense),
            budgets=self._map_all("budgets", raw.get("budgets", ()), self.map_budget),
            fees=self.map_fees(raw.get("fees", {})),
            snapshot_id=snapshot_id,
        )

        issues = tuple(self._issues)
        if issues:
            logger.warning("snapshot_built_with_issues", extra={
                "snapshot_id": snapshot_id,
                "issue_count": len(issues),
                "issue_codes": sorted({i.code for i in issues}),
            })
        logger.info("snapshot_built", extra={
            "snapshot_id": snapshot_id,
            "students": len(snapshot.students),
            "batches": len(snapshot.batches),
            "payments": len(snapshot.payments),
        })
        return SnapshotBuildResult(snapshot=snapshot, issues=issues)


def _apply_default_times(text: str, start: str, end: str) -> str:
    """Give time-less legacy segments (``"MON, WED"``) the batch's times."""
    parts = []
    for part in text.split(","):
        words = part.strip().split()
        if len(words) == 1:
            parts.append(f"{words[0]} {start}-{end}")
        elif words:
            parts.append(" ".join(words))
    return ", ".join(parts)


def build_snapshot(
    raw: Mapping[str, Any] | None,
    currency: Currency | str,
    snapshot_id: str | None = None,
) -> SnapshotBuildResult:
    """Convenience wrapper: ``SnapshotBuilder(currency).build(raw)``."""
    return SnapshotBuilder(currency).build(raw, snapshot_id=snapshot_id)
