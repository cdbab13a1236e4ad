"""
In-memory ledger for dry runs.

Every account has a holding position (its vault token account) and one
position per venue. Thread safe: calls arrive from the ledger worker pool.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

import base58

from app.core.errors import LedgerError
from app.domain.models import Strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerCall:
    op: str
    account: str
    venue: Optional[Strategy]
    amount: Optional[int] = None


class PaperLedger:
    def __init__(self):
        self._lock = threading.Lock()
        self._holding: Dict[str, int] = {}
        self._positions: Dict[Tuple[str, Strategy], int] = {}
        self._failures: Set[Tuple[str, str]] = set()
        self._counter = 0
        self.calls: List[LedgerCall] = []

    # ------------------------------------------------------------------
    # Simulation controls
    # ------------------------------------------------------------------

    def fund(self, account: str, amount: int, venue: Optional[Strategy] = None) -> None:
        """Credit an account's holding position, or a venue position directly."""
        with self._lock:
            if venue is None:
                self._holding[account] = self._holding.get(account, 0) + amount
            else:
                key = (account, venue)
                self._positions[key] = self._positions.get(key, 0) + amount

    def fail_on(self, op: str, account: str) -> None:
        """Make every `op` ("deposit", "withdraw", "balance_of") for `account` fail."""
        with self._lock:
            self._failures.add((op, account))

    def clear_failures(self) -> None:
        with self._lock:
            self._failures.clear()

    def reset_calls(self) -> None:
        with self._lock:
            self.calls.clear()

    def position(self, account: str, venue: Strategy) -> int:
        with self._lock:
            return self._positions.get((account, venue), 0)

    # ------------------------------------------------------------------
    # Ledger protocol
    # ------------------------------------------------------------------

    def _next_tx(self, op: str, account: str) -> str:
        self._counter += 1
        digest = hashlib.sha512(f"{op}:{account}:{self._counter}".encode()).digest()
        return base58.b58encode(digest).decode("ascii")

    def _check_failure(self, op: str, account: str) -> None:
        if (op, account) in self._failures:
            raise LedgerError(f"simulated {op} failure for {account}")

    def deposit(self, account: str, venue: Strategy, amount: int) -> str:
        with self._lock:
            self.calls.append(LedgerCall("deposit", account, venue, amount))
            self._check_failure("deposit", account)
            if amount <= 0:
                raise LedgerError("amount must be > 0")
            available = self._holding.get(account, 0)
            if amount > available:
                raise LedgerError(
                    f"insufficient vault balance for {account}: {available} < {amount}"
                )
            self._holding[account] = available - amount
            key = (account, venue)
            self._positions[key] = self._positions.get(key, 0) + amount
            tx = self._next_tx("deposit", account)
        logger.info("paper deposit user=%s venue=%s amount=%d tx=%s", account, venue.value, amount, tx)
        return tx

    def withdraw(self, account: str, venue: Strategy) -> str:
        with self._lock:
            self.calls.append(LedgerCall("withdraw", account, venue))
            self._check_failure("withdraw", account)
            amount = self._positions.pop((account, venue), 0)
            self._holding[account] = self._holding.get(account, 0) + amount
            tx = self._next_tx("withdraw", account)
        logger.info("paper withdraw user=%s venue=%s amount=%d tx=%s", account, venue.value, amount, tx)
        return tx

    def balance_of(self, account: str, venue: Optional[Strategy] = None) -> int:
        with self._lock:
            self.calls.append(LedgerCall("balance_of", account, venue))
            self._check_failure("balance_of", account)
            if venue is None:
                return self._holding.get(account, 0)
            return self._positions.get((account, venue), 0)
