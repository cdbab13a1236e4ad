"""
Shared strategy cell.

Readers take a snapshot of the current value; writers serialize on an
exclusive lock. Owned by the keeper runtime and injected wherever needed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.domain.models import Strategy
from app.utils.time import now_utc

logger = logging.getLogger(__name__)


class StrategyState:
    def __init__(self, initial: Strategy):
        self._value = initial
        self._changed_at: Optional[datetime] = None
        self._write_lock = asyncio.Lock()

    @property
    def current(self) -> Strategy:
        # Single reference read on the event loop thread: always a whole value
        return self._value

    @property
    def changed_at(self) -> Optional[datetime]:
        return self._changed_at

    async def flip_to(self, desired: Strategy) -> Strategy:
        """Set the strategy under exclusive access; returns the previous value."""
        async with self._write_lock:
            previous = self._value
            if previous != desired:
                self._value = desired
                self._changed_at = now_utc()
                logger.info("Strategy updated: %s -> %s", previous.value, desired.value)
            return previous
