"""
Keeper runtime: owns the strategy state, tracked accounts, oracle, ledger
pool, controller and scheduler for the lifetime of the application.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from app.config import Settings
from app.domain.models import Strategy
from app.domain.services.rebalance_controller import RebalanceController
from app.domain.services.strategy_state import StrategyState
from app.domain.services.tracked_accounts import AccountStore, TrackedAccountSet
from app.infrastructure.ledger.executor import LedgerExecutor
from app.infrastructure.ledger.http_ledger import HttpLedger
from app.infrastructure.ledger.paper_ledger import PaperLedger
from app.infrastructure.ledger.types import Ledger
from app.infrastructure.rates.rate_oracle import RateOracle
from app.infrastructure.solana.keys import OperatorKey, load_operator_key, normalize_pubkey
from app.scheduler.main import KeeperScheduler

logger = logging.getLogger(__name__)


def build_ledger(settings: Settings, operator: OperatorKey) -> Ledger:
    mode = (settings.LEDGER_MODE or "").lower()
    if mode == "http":
        return HttpLedger(
            base_url=settings.LEDGER_URL,
            operator=operator,
            timeout_seconds=settings.LEDGER_TIMEOUT_SECONDS,
        )
    if mode == "paper":
        logger.warning("Ledger in paper mode: no real transactions will be sent")
        return PaperLedger()
    raise ValueError(f"Unknown LEDGER_MODE: {settings.LEDGER_MODE!r}")


class KeeperRuntime:
    def __init__(
        self,
        operator: OperatorKey,
        program_id: str,
        state: StrategyState,
        accounts: TrackedAccountSet,
        ledger: LedgerExecutor,
        controller: RebalanceController,
        scheduler: Optional[KeeperScheduler] = None,
    ):
        self.operator = operator
        self.program_id = program_id
        self.state = state
        self.accounts = accounts
        self.ledger = ledger
        self.controller = controller
        self.scheduler = scheduler

    @classmethod
    def build(
        cls,
        settings: Settings,
        operator: Optional[OperatorKey] = None,
        ledger: Optional[Ledger] = None,
        oracle: Optional[RateOracle] = None,
        store: Optional[AccountStore] = None,
    ) -> "KeeperRuntime":
        # CredentialError here aborts startup
        operator = operator or load_operator_key(settings.KEEPER_KEYPAIR_PATH)
        program_id = normalize_pubkey(settings.PROGRAM_ID)

        executor = LedgerExecutor(
            ledger or build_ledger(settings, operator),
            max_workers=settings.LEDGER_WORKERS,
            timeout_seconds=settings.LEDGER_TIMEOUT_SECONDS,
        )
        state = StrategyState(Strategy.parse(settings.INITIAL_STRATEGY))
        accounts = TrackedAccountSet(
            (normalize_pubkey(a) for a in settings.tracked_account_seed()),
            store=store,
        )
        controller = RebalanceController(
            oracle=oracle or RateOracle.from_settings(settings),
            ledger=executor,
            state=state,
            accounts=accounts,
        )
        scheduler = None
        if settings.SCHEDULER_ENABLED:
            scheduler = KeeperScheduler(
                controller,
                interval_seconds=settings.REBALANCE_INTERVAL_SECONDS,
                misfire_grace_seconds=settings.REBALANCE_MISFIRE_GRACE_SECONDS,
                timezone=settings.TIMEZONE,
            )

        return cls(
            operator=operator,
            program_id=program_id,
            state=state,
            accounts=accounts,
            ledger=executor,
            controller=controller,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        await self.accounts.load()
        logger.info(
            "Keeper starting bot_key=%s program_id=%s strategy=%s tracked=%d",
            self.operator.pubkey,
            self.program_id,
            self.state.current.value,
            len(self.accounts),
        )
        if self.scheduler:
            self.scheduler.start()
        else:
            logger.info("⏰ Scheduler disabled")

    async def stop(self) -> None:
        if self.scheduler:
            self.scheduler.stop()
        self.ledger.shutdown()

    def tracker_status(self) -> Dict[str, object]:
        controller = self.controller
        if self.scheduler is None:
            scheduler_status = "disabled"
        else:
            scheduler_status = "running" if self.scheduler.running else "stopped"

        last = controller.last_result
        last_result = None
        if last is not None:
            last_result = {
                "kamino_apy": float(last.kamino.apy),
                "marginfi_apy": float(last.marginfi.apy),
                "current": last.current.value,
                "desired": last.desired.value,
                "flipped": last.flipped,
                "outcomes": last.report.outcome_counts() if last.report else {},
                "failures": [
                    {"user": f.account, "outcome": f.outcome.value, "error": f.error}
                    for f in (last.report.failures if last.report else [])
                ],
            }

        changed_at = self.state.changed_at
        return {
            "scheduler": scheduler_status,
            "evaluating": controller.evaluating,
            "strategy": self.state.current.value,
            "strategy_changed_at": changed_at.isoformat() if changed_at else None,
            "tracked_accounts": len(self.accounts),
            "last_run_at": controller.last_run_at.isoformat() if controller.last_run_at else None,
            "last_error": controller.last_error,
            "last_result": last_result,
        }
