"""
REBALANCE CONTROLLER

Decides which venue should hold the pool and migrates every tracked account
when that decision changes.

RULES:
- Both yields must be read before anything is decided
- Kamino only when strictly better; ties go to Marginfi
- Every unwind of a tick finishes before the first redeploy starts
- One account failing never stops the others
- The strategy flips once per tick, after every account was attempted
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.core.errors import (
    EvaluationInProgress,
    InvalidAmount,
    LedgerError,
)
from app.domain.models import (
    AccountMigration,
    EvaluationResult,
    MigrationOutcome,
    MigrationReport,
    RoutedOperation,
    Strategy,
    decide_strategy,
)
from app.domain.services.strategy_state import StrategyState
from app.domain.services.tracked_accounts import TrackedAccountSet
from app.infrastructure.ledger.executor import LedgerExecutor
from app.infrastructure.rates.rate_oracle import RateOracle
from app.infrastructure.solana.keys import normalize_pubkey
from app.utils.time import now_utc

logger = logging.getLogger(__name__)

U64_MAX = (1 << 64) - 1


class RebalanceController:
    def __init__(
        self,
        oracle: RateOracle,
        ledger: LedgerExecutor,
        state: StrategyState,
        accounts: TrackedAccountSet,
    ):
        self.oracle = oracle
        self.ledger = ledger
        self.state = state
        self.accounts = accounts
        self._evaluation_lock = asyncio.Lock()

        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[EvaluationResult] = None
        self.last_error: Optional[str] = None

    @property
    def evaluating(self) -> bool:
        return self._evaluation_lock.locked()

    # ------------------------------------------------------------------
    # TICK
    # ------------------------------------------------------------------

    async def evaluate_once(self) -> EvaluationResult:
        """
        Sample both venues, decide, and migrate on a flip.

        Raises:
            EvaluationInProgress: another evaluation is still running
            RateFetchError: a venue could not be sampled; nothing was changed
        """
        if self._evaluation_lock.locked():
            raise EvaluationInProgress("rebalance evaluation already running")

        async with self._evaluation_lock:
            self.last_run_at = now_utc()
            try:
                result = await self._evaluate()
            except Exception as exc:
                self.last_error = str(exc)
                raise
            self.last_result = result
            self.last_error = None
            return result

    async def _evaluate(self) -> EvaluationResult:
        logger.info("tracker: fetching APYs")
        samples = await self.oracle.sample_all()
        kamino = samples[Strategy.KAMINO]
        marginfi = samples[Strategy.MARGINFI]

        desired = decide_strategy(kamino.apy, marginfi.apy)
        current = self.state.current
        logger.info(
            "tracker: decision current=%s desired=%s (kamino=%s marginfi=%s)",
            current.value,
            desired.value,
            kamino.apy,
            marginfi.apy,
        )

        if desired == current:
            logger.info("tracker: strategy unchanged")
            return EvaluationResult(kamino=kamino, marginfi=marginfi, current=current, desired=desired)

        logger.info("tracker: flipping strategy %s -> %s and rebalancing", current.value, desired.value)
        report = await self.migrate(current, desired)
        await self.state.flip_to(desired)

        return EvaluationResult(
            kamino=kamino,
            marginfi=marginfi,
            current=current,
            desired=desired,
            report=report,
        )

    # ------------------------------------------------------------------
    # MIGRATION
    # ------------------------------------------------------------------

    async def migrate(self, source: Strategy, target: Strategy) -> MigrationReport:
        accounts = self.accounts.snapshot()
        report = MigrationReport(from_strategy=source, to_strategy=target)

        for account in accounts:
            report.record(await self._unwind(account, source))

        for account in accounts:
            report.record(await self._redeploy(account, target))

        failures = report.failures
        if failures:
            logger.warning(
                "tracker: migration %s -> %s finished with %d failure(s) over %d account(s): %s",
                source.value,
                target.value,
                len(failures),
                len(accounts),
                report.outcome_counts(),
            )
        else:
            logger.info(
                "tracker: migration %s -> %s finished for %d account(s): %s",
                source.value,
                target.value,
                len(accounts),
                report.outcome_counts(),
            )
        return report

    async def _unwind(self, account: str, source: Strategy) -> AccountMigration:
        try:
            tx = await self.ledger.withdraw(account, source)
        except LedgerError as exc:
            logger.warning("tracker: unwind failed user=%s venue=%s error=%s", account, source.value, exc)
            return AccountMigration(account, MigrationOutcome.UNWIND_FAILED, error=str(exc))

        logger.info("tracker: unwind ok user=%s venue=%s tx=%s", account, source.value, tx)
        return AccountMigration(account, MigrationOutcome.UNWOUND, tx=tx)

    async def _redeploy(self, account: str, target: Strategy) -> AccountMigration:
        try:
            # Always re-read: the ledger, not a cached figure, is the source of truth
            amount = await self.ledger.balance_of(account)
        except LedgerError as exc:
            logger.warning("tracker: balance read failed user=%s error=%s", account, exc)
            return AccountMigration(account, MigrationOutcome.REDEPLOY_FAILED, error=str(exc))

        if amount == 0:
            logger.warning("tracker: no balance to redeploy user=%s", account)
            return AccountMigration(account, MigrationOutcome.REDEPLOY_SKIPPED, amount=0)

        try:
            tx = await self.ledger.deposit(account, target, amount)
        except LedgerError as exc:
            logger.warning(
                "tracker: redeploy failed user=%s venue=%s amount=%d error=%s",
                account,
                target.value,
                amount,
                exc,
            )
            return AccountMigration(account, MigrationOutcome.REDEPLOY_FAILED, amount=amount, error=str(exc))

        logger.info("tracker: redeploy ok user=%s venue=%s amount=%d tx=%s", account, target.value, amount, tx)
        return AccountMigration(account, MigrationOutcome.REDEPLOYED, tx=tx, amount=amount)

    # ------------------------------------------------------------------
    # SINGLE ACCOUNT ROUTING
    # ------------------------------------------------------------------

    async def route_deposit(self, account: str, amount: int) -> RoutedOperation:
        if amount <= 0:
            raise InvalidAmount("amount must be > 0")
        if amount > U64_MAX:
            raise InvalidAmount("amount exceeds u64")
        user = normalize_pubkey(account)

        venue = self.state.current
        logger.info("Routing deposit user=%s amount=%d venue=%s", user, amount, venue.value)
        tx = await self.ledger.deposit(user, venue, amount)

        try:
            await self.accounts.add(user)
        except Exception:
            # Funds already moved; the account stays tracked and the next deposit retries the write
            logger.exception("Failed to persist tracked account %s", user)

        return RoutedOperation(account=user, venue=venue, tx=tx, amount=amount)

    async def route_withdraw(self, account: str) -> RoutedOperation:
        user = normalize_pubkey(account)

        venue = self.state.current
        logger.info("Routing withdraw user=%s venue=%s", user, venue.value)
        tx = await self.ledger.withdraw(user, venue)
        return RoutedOperation(account=user, venue=venue, tx=tx)
