"""
LedgerPolicy schema.

Defines the human-authored policy that parameterises the engines: the
credit table, the overdue cadence and threshold, compliance bands and the
finance chart window.  The YAML file is parsed into these types by the
loader; services receive the frozen ``LedgerPolicy`` and pass its values
into engine calls.
"""

from __future__ import annotations

from dataclasses import dataclass

from school_kernel.domain.snapshots import PaymentFrequency

CADENCE_MODES = ("fixed", "schedule")


@dataclass(frozen=True)
class CreditPolicy:
    """Class credits bought per payment frequency."""

    per_frequency: tuple[tuple[PaymentFrequency, int], ...]

    @property
    def table(self) -> dict[PaymentFrequency, int]:
        return dict(self.per_frequency)


@dataclass(frozen=True)
class OverduePolicy:
    """How the overdue heuristic estimates when credits run out.

    ``cadence_mode`` is ``fixed`` (always ``sessions_per_week``) or
    ``schedule`` (the enrolled batch's own weekly session count).
    """

    cadence_mode: str = "fixed"
    sessions_per_week: int = 2
    low_water_mark: int = 2


@dataclass(frozen=True)
class CompliancePolicy:
    """Teacher attendance display and counting rules."""

    months_shown: int = 12
    include_implicit_sessions: bool = False


@dataclass(frozen=True)
class FinancePolicy:
    months_back: int = 6
    months_forward: int = 5


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Runtime policy for the ledger engines.

    Contract:
        Produced only by ``school_config.get_active_config()``.
    Guarantees:
        - ``checksum`` is the SHA-256 of the canonical JSON form of the
          source document; identical files give identical checksums.
    """

    policy_id: str
    version: int
    currency: str
    credits: CreditPolicy
    overdue: OverduePolicy
    compliance: CompliancePolicy
    finance: FinancePolicy
    checksum: str = ""
