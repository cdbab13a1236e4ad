"""
Set of depositor accounts under management.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    async def list_accounts(self) -> List[str]:
        ...

    async def add_account(self, account: str) -> None:
        ...


class TrackedAccountSet:
    def __init__(self, accounts: Iterable[str] = (), store: Optional[AccountStore] = None):
        # dict keeps first-seen order so migrations walk accounts deterministically
        self._accounts: Dict[str, None] = dict.fromkeys(accounts)
        self._store = store
        self._unpersisted: Set[str] = set()
        self._lock = asyncio.Lock()

    def __contains__(self, account: str) -> bool:
        return account in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def snapshot(self) -> List[str]:
        return list(self._accounts)

    async def load(self) -> int:
        """Merge persisted accounts into memory and persist seeded ones; returns count loaded."""
        if self._store is None:
            return 0
        stored = await self._store.list_accounts()
        async with self._lock:
            seeded = [a for a in self._accounts if a not in set(stored)]
            for account in stored:
                self._accounts.setdefault(account, None)
        for account in seeded:
            await self._store.add_account(account)
        logger.info("Tracked accounts loaded: %d stored, %d seeded", len(stored), len(seeded))
        return len(stored)

    async def add(self, account: str) -> bool:
        """
        Track an account; returns True when it was not tracked before.

        The account is tracked in memory even if the store write fails. It stays
        marked unpersisted and the next add for it retries the write.
        """
        async with self._lock:
            is_new = account not in self._accounts
            if not is_new and account not in self._unpersisted:
                return False
            self._accounts[account] = None
            if self._store is not None:
                self._unpersisted.add(account)

        if is_new:
            logger.info("Tracking new account %s", account)
        else:
            logger.info("Retrying store write for tracked account %s", account)

        if self._store is not None:
            await self._store.add_account(account)
            async with self._lock:
                self._unpersisted.discard(account)
        return is_new
