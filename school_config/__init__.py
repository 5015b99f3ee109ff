"""
school_config -- single public entrypoint for ledger policy.

Responsibility:
    Provides the ONLY way to obtain the ledger policy at runtime through
    ``get_active_config()``.  No other component reads the policy file
    directly.

Architecture position:
    Configuration -- sits above ``school_kernel`` and below
    ``school_services``.  Engines never import from this package; services
    pass policy values into engine calls.

Invariants enforced:
    - Single entrypoint: all runtime policy flows through
      ``get_active_config()``.
    - Deterministic: the same file always yields the same checksum.

Failure modes:
    - ``ConfigurationError`` -- the file is missing, not valid YAML, or
      fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SCHOOL_CONFIG_TRACE`` log entry with the policy id, version and
    checksum, tying computed dashboards to the policy that produced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from school_config.loader import load_policy
from school_config.schema import LedgerPolicy

_logger = logging.getLogger("school_kernel.config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "defaults" / "ledger_policy.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerPolicy:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a policy YAML file.  Defaults to the
            bundled ``defaults/ledger_policy.yaml``.

    Raises:
        ConfigurationError: If the policy file is missing or invalid.
    """
    policy_path = Path(path) if path is not None else DEFAULT_POLICY_PATH
    policy = load_policy(policy_path)

    _logger.info(
        "SCHOOL_CONFIG_TRACE",
        extra={
            "trace_type": "SCHOOL_CONFIG_TRACE",
            "policy_id": policy.policy_id,
            "policy_version": policy.version,
            "checksum": policy.checksum,
            "currency": policy.currency,
            "cadence_mode": policy.overdue.cadence_mode,
        },
    )
    return policy


__all__ = ["DEFAULT_POLICY_PATH", "LedgerPolicy", "get_active_config"]
