"""
Kamino reserve metrics provider.
Reads the pre-aggregated supply APY from the reserve history endpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from app.core.errors import EmptyHistory, RateHTTPError, RatePayloadError
from app.domain.models import Strategy
from app.utils.time import now_utc, to_rfc3339_seconds

logger = logging.getLogger(__name__)


class KaminoProvider:
    venue = Strategy.KAMINO

    def __init__(
        self,
        api_base_url: str,
        market: str,
        reserve: str,
        lookback_hours: int = 12,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.market = market
        self.reserve = reserve
        self.lookback_hours = lookback_hours

    def history_url(self) -> str:
        return f"{self.api_base_url}/kamino-market/{self.market}/reserves/{self.reserve}/metrics/history"

    def window(self, end: Optional[datetime] = None) -> dict:
        end = end or now_utc()
        start = end - timedelta(hours=self.lookback_hours)
        return {"start": to_rfc3339_seconds(start), "end": to_rfc3339_seconds(end)}

    async def fetch_supply_apy(self, client: httpx.AsyncClient) -> Decimal:
        try:
            response = await client.get(self.history_url(), params=self.window())
        except httpx.HTTPError as exc:
            raise RateHTTPError(self.venue.value, f"http request failed: {exc}") from exc

        if not response.is_success:
            raise RateHTTPError(self.venue.value, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise RatePayloadError(self.venue.value, "response is not JSON") from exc

        return self.parse_history(payload)

    def parse_history(self, payload: object) -> Decimal:
        if not isinstance(payload, dict) or not isinstance(payload.get("history"), list):
            raise RatePayloadError(self.venue.value, "missing 'history' list")

        history = payload["history"]
        if not history:
            raise EmptyHistory(
                self.venue.value,
                f"empty history in the last {self.lookback_hours}h",
            )

        last = history[-1]
        metrics = last.get("metrics") if isinstance(last, dict) else None
        if not isinstance(metrics, dict):
            raise RatePayloadError(self.venue.value, "history point has no 'metrics'")

        raw = metrics.get("supplyInterestAPY", 0)
        try:
            # str() keeps the JSON float's shortest repr instead of its binary expansion
            apy = Decimal(str(raw))
        except InvalidOperation as exc:
            raise RatePayloadError(self.venue.value, f"bad supplyInterestAPY: {raw!r}") from exc

        if not apy.is_finite() or apy < 0:
            raise RatePayloadError(self.venue.value, f"bad supplyInterestAPY: {raw!r}")

        logger.debug("Kamino history points=%d last_apy=%s", len(history), apy)
        return apy
