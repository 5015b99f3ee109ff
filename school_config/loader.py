"""
Policy Loader (``school_config.loader``).

Responsibility
--------------
Loads the ledger policy YAML file and parses it into the frozen
``school_config.schema`` dataclasses.  Runtime callers go through
``school_config.get_active_config()`` rather than calling this directly.

Invariants enforced
-------------------
* Every parse error raises ``ConfigurationError`` naming the source file
  and the offending key; required fields have no silent defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  source document.

Failure modes
-------------
* Missing file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` chained from ``yaml.YAMLError``.
* Unknown frequency, cadence mode or currency  -> ``ConfigurationError``.
* Non-positive counts  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from school_kernel.domain.currency import CurrencyRegistry
from school_kernel.domain.snapshots import PaymentFrequency
from school_kernel.exceptions import ConfigurationError
from school_config.schema import (
    CADENCE_MODES,
    CompliancePolicy,
    CreditPolicy,
    FinancePolicy,
    LedgerPolicy,
    OverduePolicy,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: the file is missing, unreadable, invalid YAML,
            or does not contain a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(f"Policy file not found: {path}", source=str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Policy file is not valid YAML: {e}", source=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigurationError("Policy file must contain a mapping", source=str(path))
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _require(data: dict[str, Any], key: str, source: str | None) -> Any:
    if key not in data:
        raise ConfigurationError(f"Missing required key: {key}", source=source)
    return data[key]


def _positive_int(value: Any, key: str, source: str | None, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}", source=source)
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError(f"{key} must be positive, got {value}", source=source)
    return value


def parse_credits(data: dict[str, Any], source: str | None = None) -> CreditPolicy:
    raw = _require(data, "per_frequency", source)
    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError("credits.per_frequency must be a non-empty mapping", source=source)
    entries = []
    for name, count in raw.items():
        frequency = PaymentFrequency.parse(name)
        if not frequency.is_known:
            raise ConfigurationError(f"Unknown payment frequency: {name!r}", source=source)
        entries.append((frequency, _positive_int(count, f"credits.{name}", source)))
    return CreditPolicy(per_frequency=tuple(entries))


def parse_overdue(data: dict[str, Any], source: str | None = None) -> OverduePolicy:
    mode = data.get("cadence_mode", "fixed")
    if mode not in CADENCE_MODES:
        raise ConfigurationError(
            f"overdue.cadence_mode must be one of {CADENCE_MODES}, got {mode!r}",
            source=source,
        )
    return OverduePolicy(
        cadence_mode=mode,
        sessions_per_week=_positive_int(
            data.get("sessions_per_week", 2), "overdue.sessions_per_week", source,
        ),
        low_water_mark=_positive_int(
            data.get("low_water_mark", 2), "overdue.low_water_mark", source, allow_zero=True,
        ),
    )


def parse_compliance(data: dict[str, Any], source: str | None = None) -> CompliancePolicy:
    implicit = data.get("include_implicit_sessions", False)
    if not isinstance(implicit, bool):
        raise ConfigurationError(
            "compliance.include_implicit_sessions must be a boolean", source=source,
        )
    return CompliancePolicy(
        months_shown=_positive_int(
            data.get("months_shown", 12), "compliance.months_shown", source,
        ),
        include_implicit_sessions=implicit,
    )


def parse_finance(data: dict[str, Any], source: str | None = None) -> FinancePolicy:
    return FinancePolicy(
        months_back=_positive_int(
            data.get("months_back", 6), "finance.months_back", source, allow_zero=True,
        ),
        months_forward=_positive_int(
            data.get("months_forward", 5), "finance.months_forward", source, allow_zero=True,
        ),
    )


def parse_policy(data: dict[str, Any], source: str | None = None) -> LedgerPolicy:
    """Parse a whole policy document into a ``LedgerPolicy``."""
    currency = str(_require(data, "currency", source)).upper()
    if not CurrencyRegistry.is_valid(currency):
        raise ConfigurationError(f"Unsupported currency: {currency}", source=source)

    return LedgerPolicy(
        policy_id=str(_require(data, "policy_id", source)),
        version=_positive_int(_require(data, "version", source), "version", source),
        currency=currency,
        credits=parse_credits(_require(data, "credits", source), source),
        overdue=parse_overdue(data.get("overdue") or {}, source),
        compliance=parse_compliance(data.get("compliance") or {}, source),
        finance=parse_finance(data.get("finance") or {}, source),
        checksum=compute_checksum(data),
    )


def load_policy(path: Path) -> LedgerPolicy:
    return parse_policy(load_yaml_file(path), source=str(path))
