"""
Runs blocking ledger calls on a bounded worker pool so neither request
handlers nor the rebalance tick block the event loop.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from app.core.errors import LedgerError, LedgerTimeout
from app.domain.models import Strategy
from app.infrastructure.ledger.types import Ledger

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerExecutor:
    def __init__(self, ledger: Ledger, max_workers: int = 4, timeout_seconds: float = 60.0):
        self.ledger = ledger
        self.timeout_seconds = timeout_seconds
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ledger")

    async def _run(self, label: str, fn: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._pool, functools.partial(fn, *args))
        try:
            return await asyncio.wait_for(future, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            # The worker thread keeps running; its late result is discarded
            raise LedgerTimeout(f"{label} timed out after {self.timeout_seconds:g}s") from exc
        except LedgerError:
            raise
        except Exception as exc:
            raise LedgerError(f"{label} failed: {exc}") from exc

    async def deposit(self, account: str, venue: Strategy, amount: int) -> str:
        return await self._run(f"deposit {account}", self.ledger.deposit, account, venue, amount)

    async def withdraw(self, account: str, venue: Strategy) -> str:
        return await self._run(f"withdraw {account}", self.ledger.withdraw, account, venue)

    async def balance_of(self, account: str, venue: Optional[Strategy] = None) -> int:
        return await self._run(f"balance {account}", self.ledger.balance_of, account, venue)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.ledger, "close", None)
        if callable(close):
            close()
