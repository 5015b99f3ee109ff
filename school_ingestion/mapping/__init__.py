"""Mapping engine: pure value coercion and payment-frequency normalisation."""

from school_ingestion.mapping.engine import (
    CoercionResult,
    IngestionIssue,
    coerce_bool,
    coerce_date,
    coerce_datetime,
    coerce_decimal,
    coerce_int,
    coerce_str,
    frequency_from_package_name,
    normalize_payment_frequency,
)

__all__ = [
    "CoercionResult",
    "IngestionIssue",
    "coerce_bool",
    "coerce_date",
    "coerce_datetime",
    "coerce_decimal",
    "coerce_int",
    "coerce_str",
    "frequency_from_package_name",
    "normalize_payment_frequency",
]
