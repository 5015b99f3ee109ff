"""
Typed Exception Hierarchy for the School Ledger Kernel.

===============================================================================
ERROR MODEL
===============================================================================

The engine feeds dashboard screens.  Sparse or incomplete data is always
tolerated (unknown frequencies, missing fees, malformed schedule segments
degrade to named defaults), so the only errors that escape are the ones a
caller must act on: a missing snapshot, a reversed required date range, an
unparseable month key.

Every error has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA (not just a message string)

Example:
    try:
        service.teacher_overview(snapshot, teacher_id, start="2024-06", end="2024-01")
    except InvalidDateRangeError as e:
        api_response(code=e.code, start=e.start, end=e.end)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SchoolKernelError (base)
    |
    +-- InvalidInputError
    |   +-- MissingSnapshotError
    |   +-- InvalidDateRangeError
    |   +-- InvalidMonthKeyError
    |   +-- UnassignedBatchError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                  | When Raised
----------------|-----------------------|-----------------------------------------
Input           | INVALID_INPUT         | Generic invalid engine input
                | MISSING_SNAPSHOT      | Snapshot or collection is None
                | INVALID_DATE_RANGE    | Required range has end < start
                | INVALID_MONTH_KEY     | Month key is not YYYY-MM
                | UNASSIGNED_BATCH      | Teacher mark against a batch they don't teach
----------------|-----------------------|-----------------------------------------
Currency        | INVALID_CURRENCY      | Not a supported ISO 4217 code
                | CURRENCY_MISMATCH     | Mixed currencies in one aggregate
----------------|-----------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR   | Ledger policy file is invalid
"""

from datetime import date


class SchoolKernelError(Exception):
    """
    Base exception for all school ledger errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SCHOOL_KERNEL_ERROR"


# Input exceptions


class InvalidInputError(SchoolKernelError):
    """Engine invoked with input it cannot compute over.

    Distinct from sparse data, which is always tolerated.
    """

    code: str = "INVALID_INPUT"


class MissingSnapshotError(InvalidInputError):
    """A required snapshot or snapshot collection was None."""

    code: str = "MISSING_SNAPSHOT"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Snapshot input is missing: {name}")


class InvalidDateRangeError(InvalidInputError):
    """A required date or month range ends before it starts."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: object, end: object):
        self.start = str(start)
        self.end = str(end)
        super().__init__(f"Range end {end} precedes start {start}")


class InvalidMonthKeyError(InvalidInputError):
    """A month key could not be parsed as YYYY-MM."""

    code: str = "INVALID_MONTH_KEY"

    def __init__(self, value: object):
        self.value = str(value)
        super().__init__(f"Invalid month key: {value!r} (expected YYYY-MM)")


class UnassignedBatchError(InvalidInputError):
    """An attendance mark names a batch not assigned to the teacher."""

    code: str = "UNASSIGNED_BATCH"

    def __init__(self, teacher_id: str, batch_id: str, session_date: date):
        self.teacher_id = teacher_id
        self.batch_id = batch_id
        self.session_date = session_date.isoformat()
        super().__init__(
            f"Batch {batch_id} is not assigned to teacher {teacher_id}"
        )


# Currency exceptions


class CurrencyError(SchoolKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not supported."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Amounts in different currencies were combined."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


# Configuration exceptions


class ConfigurationError(SchoolKernelError):
    """The ledger policy configuration is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)
