"""
Ledger protocol for type hints.

All methods are blocking round trips with at-most-one attempt per call.
Failures raise `LedgerError` carrying a human readable cause.
"""

from __future__ import annotations

from typing import Optional, Protocol

from app.domain.models import Strategy


class Ledger(Protocol):
    def deposit(self, account: str, venue: Strategy, amount: int) -> str:
        """Move `amount` from the account's holding position into `venue`; returns tx id."""
        ...

    def withdraw(self, account: str, venue: Strategy) -> str:
        """Pull the account's whole `venue` position back to its holding position."""
        ...

    def balance_of(self, account: str, venue: Optional[Strategy] = None) -> int:
        """Balance in smallest units; `venue=None` reads the holding position."""
        ...
