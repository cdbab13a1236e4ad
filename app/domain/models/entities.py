"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class Strategy(str, Enum):
    """Lending venue currently receiving deposits"""
    KAMINO = "Kamino"
    MARGINFI = "Marginfi"

    @property
    def service_name(self) -> str:
        return f"keeper_{self.value.lower()}"

    @classmethod
    def parse(cls, value: str) -> "Strategy":
        for member in cls:
            if member.value.lower() == (value or "").strip().lower():
                return member
        raise ValueError(f"Unknown strategy: {value!r}")


class MigrationOutcome(str, Enum):
    """Per-account result of one migration step"""
    UNWOUND = "unwound"
    UNWIND_FAILED = "unwind_failed"
    REDEPLOYED = "redeployed"
    REDEPLOY_SKIPPED = "redeploy_skipped"
    REDEPLOY_FAILED = "redeploy_failed"

    @property
    def is_failure(self) -> bool:
        return self in (MigrationOutcome.UNWIND_FAILED, MigrationOutcome.REDEPLOY_FAILED)


@dataclass(frozen=True)
class RateSample:
    """Normalized annualized supply yield for one venue - Immutable"""
    venue: Strategy
    apy: Decimal
    fetched_at: datetime

    def __post_init__(self):
        if self.apy < Decimal("0"):
            raise ValueError(f"{self.venue.value} APY cannot be negative: {self.apy}")


@dataclass(frozen=True)
class AccountMigration:
    """One account's outcome for one migration step"""
    account: str
    outcome: MigrationOutcome
    tx: Optional[str] = None
    amount: Optional[int] = None
    error: Optional[str] = None


@dataclass
class MigrationReport:
    """Everything that happened to the tracked accounts during one flip"""
    from_strategy: Strategy
    to_strategy: Strategy
    records: List[AccountMigration] = field(default_factory=list)

    def record(self, migration: AccountMigration) -> None:
        self.records.append(migration)

    def for_account(self, account: str) -> List[AccountMigration]:
        return [r for r in self.records if r.account == account]

    @property
    def failures(self) -> List[AccountMigration]:
        return [r for r in self.records if r.outcome.is_failure]

    def outcome_counts(self) -> Dict[str, int]:
        counts = Counter(r.outcome.value for r in self.records)
        return dict(counts)


@dataclass(frozen=True)
class EvaluationResult:
    """Result of one controller tick"""
    kamino: RateSample
    marginfi: RateSample
    current: Strategy
    desired: Strategy
    report: Optional[MigrationReport] = None

    @property
    def flipped(self) -> bool:
        return self.current != self.desired


@dataclass(frozen=True)
class RoutedOperation:
    """A single deposit/withdraw routed to the active venue"""
    account: str
    venue: Strategy
    tx: str
    amount: Optional[int] = None


def decide_strategy(kamino_apy: Decimal, marginfi_apy: Decimal) -> Strategy:
    """
    Kamino only when strictly better; exact ties go to Marginfi.
    """
    if kamino_apy > marginfi_apy:
        return Strategy.KAMINO
    return Strategy.MARGINFI
