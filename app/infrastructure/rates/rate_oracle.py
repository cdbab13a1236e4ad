"""
Rate oracle - one fresh read per venue per call, no caching.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from app.config import Settings
from app.domain.models import RateSample, Strategy
from app.infrastructure.rates.kamino_provider import KaminoProvider
from app.infrastructure.rates.marginfi_provider import MarginfiProvider
from app.infrastructure.rates.types import RateProvider
from app.utils.time import now_utc

logger = logging.getLogger(__name__)


class RateOracle:
    def __init__(
        self,
        providers: Dict[Strategy, RateProvider],
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = [venue.value for venue in Strategy if venue not in providers]
        if missing:
            raise ValueError(f"No rate provider for: {', '.join(missing)}")
        self.providers = providers
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateOracle":
        return cls(
            providers={
                Strategy.KAMINO: KaminoProvider(
                    api_base_url=settings.KAMINO_API_BASE,
                    market=settings.KAMINO_MARKET,
                    reserve=settings.KAMINO_RESERVE,
                    lookback_hours=settings.KAMINO_LOOKBACK_HOURS,
                ),
                Strategy.MARGINFI: MarginfiProvider(
                    api_base_url=settings.MARGINFI_API_BASE,
                    bank_address=settings.MARGINFI_BANK,
                ),
            },
            timeout_seconds=settings.RATE_FETCH_TIMEOUT_SECONDS,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _sample_with(self, client: httpx.AsyncClient, venue: Strategy) -> RateSample:
        apy = await self.providers[venue].fetch_supply_apy(client)
        return RateSample(venue=venue, apy=apy, fetched_at=now_utc())

    async def sample(self, venue: Strategy) -> RateSample:
        async with self._client() as client:
            return await self._sample_with(client, venue)

    async def sample_all(self) -> Dict[Strategy, RateSample]:
        """
        Sample both venues. Any failure propagates; a partial read is never returned.
        """
        samples: Dict[Strategy, RateSample] = {}
        async with self._client() as client:
            for venue in Strategy:
                samples[venue] = await self._sample_with(client, venue)
        logger.info(
            "Rates fetched: %s",
            ", ".join(f"{v.value}={s.apy:.6f}" for v, s in samples.items()),
        )
        return samples
