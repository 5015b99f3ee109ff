"""
school_engines.tracer -- ``@traced_engine`` and the SCHOOL_ENGINE_TRACE record.

Each decorated engine call logs one INFO record on
``school_kernel.engines.tracer``::

    {"message": "SCHOOL_ENGINE_TRACE", "engine_name": "credit_ledger",
     "engine_version": "1.0", "input_fingerprint": "5be1c0a2d41f9e07",
     "duration_ms": 0.04, "function": "credit_balance"}

The fingerprint is the first 16 hex chars of SHA-256 over a canonical JSON
rendering of the selected arguments, so two calls over the same inputs
share a fingerprint however the arguments were passed.

Usage:
    @traced_engine("credit_ledger", "1.0", fingerprint_fields=("student_id", "batch_id"))
    def credit_balance(payments, attendance, student_id, batch_id):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from school_kernel.logging_config import get_logger

TRACE_MESSAGE = "SCHOOL_ENGINE_TRACE"
FINGERPRINT_LENGTH = 16

_logger = get_logger("engines.tracer")


def _plain(value: Any) -> Any:
    """Reduce a value to JSON primitives with a stable shape."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(v) for v in value), key=str)
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """Fingerprint of the named arguments; absent names hash as null."""
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine function so each call emits SCHOOL_ENGINE_TRACE."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                try:
                    arguments = signature.bind_partial(*args, **kwargs).arguments
                except TypeError:
                    arguments = kwargs
                fingerprint = compute_input_fingerprint(fingerprint_fields, arguments)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed = time.perf_counter() - started

            _logger.info(TRACE_MESSAGE, extra={
                "trace_type": TRACE_MESSAGE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "duration_ms": round(elapsed * 1000, 3),
                "function": func.__qualname__,
            })
            return result

        return wrapper

    return decorator
