"""
Rate provider protocol for type hints.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

import httpx

from app.domain.models import Strategy


class RateProvider(Protocol):
    venue: Strategy

    async def fetch_supply_apy(self, client: httpx.AsyncClient) -> Decimal:
        ...
