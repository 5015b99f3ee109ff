"""
Mapping engine: pure coercion from raw JSON-shaped values to typed values.

The storage layer hands over loosely typed dicts (strings for dates and
amounts, optional keys, legacy metadata spellings).  Everything here turns
one raw value into one typed value, reporting failure as a result object
instead of raising.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from school_kernel.domain.snapshots import PaymentFrequency


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class IngestionIssue:
    """A problem found while mapping one raw record."""

    collection: str
    index: int
    code: str
    message: str
    field: str = ""


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing one raw value to a target type."""

    success: bool
    value: Any = None
    code: str = ""
    message: str = ""


def _ok(value: Any) -> CoercionResult:
    return CoercionResult(success=True, value=value)


def _fail(code: str, message: str) -> CoercionResult:
    return CoercionResult(success=False, code=code, message=message)


# -----------------------------------------------------------------------------
# Scalar coercion
# -----------------------------------------------------------------------------


def coerce_decimal(value: Any) -> CoercionResult:
    if value is None or (isinstance(value, str) and not value.strip()):
        return _fail("MISSING_VALUE", "Amount is missing")
    if isinstance(value, bool):
        return _fail("INVALID_DECIMAL", f"Cannot coerce to decimal: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return _fail("INVALID_DECIMAL", f"Cannot coerce to decimal: {value!r}")
    if not result.is_finite():
        return _fail("INVALID_DECIMAL", f"Amount is not finite: {value!r}")
    return _ok(result)


def coerce_int(value: Any) -> CoercionResult:
    if value is None or isinstance(value, bool):
        return _fail("INVALID_INTEGER", f"Cannot coerce to integer: {value!r}")
    if isinstance(value, int):
        return _ok(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return _fail("INVALID_INTEGER", f"Cannot coerce to integer: {value!r}")
    if not result.is_finite():
        return _fail("INVALID_INTEGER", f"Integer is not finite: {value!r}")
    return _ok(int(result))


def coerce_bool(value: Any, default: bool = True) -> bool:
    """Loose boolean; None means ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, Decimal)):
        return bool(value)
    low = str(value).strip().lower()
    if low in ("true", "yes", "1", "on", "t"):
        return True
    if low in ("false", "no", "0", "off", "f", ""):
        return False
    return default


def coerce_date(value: Any) -> CoercionResult:
    """Accepts a date, a datetime, or an ISO string (time part ignored)."""
    if isinstance(value, datetime):
        return _ok(value.date())
    if isinstance(value, date):
        return _ok(value)
    if not isinstance(value, str) or not value.strip():
        return _fail("MISSING_VALUE", "Date is missing")
    s = value.strip()
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y"):
        try:
            return _ok(datetime.strptime(s[:10], fmt).date())
        except ValueError:
            continue
    return _fail("INVALID_DATE", f"Cannot parse date: {value!r}")


def coerce_datetime(value: Any) -> CoercionResult:
    """Timezone-aware datetime; naive values and bare dates are taken as UTC."""
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            result = datetime.fromisoformat(s)
        except ValueError:
            parsed = coerce_date(s)
            if not parsed.success:
                return _fail("INVALID_DATETIME", f"Cannot parse timestamp: {value!r}")
            result = datetime.combine(parsed.value, time.min)
    else:
        return _fail("MISSING_VALUE", "Timestamp is missing")
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return _ok(result)


def coerce_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


# -----------------------------------------------------------------------------
# Payment frequency
# -----------------------------------------------------------------------------

# Substrings of a package name and the frequency they imply, checked in order.
PACKAGE_NAME_FREQUENCIES: tuple[tuple[str, PaymentFrequency], ...] = (
    ("monthly", PaymentFrequency.MONTHLY),
    ("quarterly", PaymentFrequency.QUARTERLY),
    ("half", PaymentFrequency.HALF_YEARLY),
    ("yearly", PaymentFrequency.YEARLY),
)


def frequency_from_package_name(name: Any) -> PaymentFrequency:
    if not isinstance(name, str):
        return PaymentFrequency.UNKNOWN
    low = name.lower()
    for token, frequency in PACKAGE_NAME_FREQUENCIES:
        if token in low:
            return frequency
    return PaymentFrequency.UNKNOWN


def normalize_payment_frequency(record: dict[str, Any]) -> PaymentFrequency:
    """The single frequency normalisation for a raw payment.

    Tried in order: ``payment_frequency``, then ``payment_type`` (each in
    ``metadata`` first, then top level), then the package name.  Anything
    unrecognised is ``PaymentFrequency.UNKNOWN``.
    """
    metadata = record.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    for key in ("payment_frequency", "payment_type"):
        for source in (metadata, record):
            frequency = PaymentFrequency.parse(source.get(key))
            if frequency.is_known:
                return frequency
    for source in (metadata, record):
        frequency = frequency_from_package_name(source.get("package_name"))
        if frequency.is_known:
            return frequency
    return PaymentFrequency.UNKNOWN
