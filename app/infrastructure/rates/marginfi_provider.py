"""
Marginfi bank provider.

The raw bank endpoint returns pool state as I80F48 values; the supply APY is
rebuilt from utilization and the bank's interest rate curve the same way the
Marginfi app derives its displayed rates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Any, Dict

import httpx

from app.core.errors import RateHTTPError, RatePayloadError
from app.domain.indicators.fixed_point import DECIMAL_CONTEXT, decode_i80f48
from app.domain.indicators.interest_curve import (
    ONE,
    ZERO,
    apr_to_apy,
    borrow_curve,
    utilization,
)
from app.domain.models import Strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankRates:
    utilization: Decimal
    base_rate: Decimal
    supply_apr: Decimal
    borrow_apr: Decimal
    supply_apy: Decimal


def _field(data: Dict[str, Any], *path: str) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise RatePayloadError(Strategy.MARGINFI.value, f"missing field {'.'.join(path)}")
        node = node[key]
    return node


def _decimal(data: Dict[str, Any], *path: str) -> Decimal:
    try:
        return decode_i80f48(_field(data, *path))
    except ValueError as exc:
        raise RatePayloadError(Strategy.MARGINFI.value, f"bad fixed-point {'.'.join(path)}: {exc}") from exc


def _optional_decimal(data: Dict[str, Any], *path: str) -> Decimal:
    parent = data
    for key in path[:-1]:
        parent = parent.get(key) if isinstance(parent, dict) else None
    if not isinstance(parent, dict) or parent.get(path[-1]) is None:
        return ZERO
    return _decimal(data, *path)


def compute_bank_rates(bank: Dict[str, Any]) -> BankRates:
    u_opt = _decimal(bank, "config", "interestRateConfig", "optimalUtilizationRate")
    plateau = _decimal(bank, "config", "interestRateConfig", "plateauInterestRate")
    max_rate = _decimal(bank, "config", "interestRateConfig", "maxInterestRate")

    protocol_fixed = _decimal(bank, "config", "interestRateConfig", "protocolFixedFeeApr")
    protocol_rate = _decimal(bank, "config", "interestRateConfig", "protocolIrFee")
    insurance_rate = _optional_decimal(bank, "config", "interestRateConfig", "insuranceIrFee")
    insurance_fixed = _optional_decimal(bank, "config", "interestRateConfig", "insuranceFeeFixedApr")

    asset_share_value = _decimal(bank, "assetShareValue")
    liability_share_value = _decimal(bank, "liabilityShareValue")
    total_asset_shares = _decimal(bank, "totalAssetShares")
    total_liability_shares = _decimal(bank, "totalLiabilityShares")

    with localcontext(DECIMAL_CONTEXT):
        # Share counts times share value, not raw shares
        total_assets = total_asset_shares * asset_share_value
        total_liabilities = total_liability_shares * liability_share_value
        u = utilization(total_liabilities, total_assets)

        base = borrow_curve(u, u_opt, plateau, max_rate)
        borrow_apr = base * (ONE + protocol_rate + insurance_rate) + (protocol_fixed + insurance_fixed)
        supply_apr = base * u

    return BankRates(
        utilization=u,
        base_rate=base,
        supply_apr=supply_apr,
        borrow_apr=borrow_apr,
        supply_apy=apr_to_apy(supply_apr),
    )


class MarginfiProvider:
    venue = Strategy.MARGINFI

    def __init__(self, api_base_url: str, bank_address: str):
        self.api_base_url = api_base_url.rstrip("/")
        self.bank_address = bank_address

    def bank_url(self) -> str:
        return f"{self.api_base_url}/bankData/rawBankData"

    async def fetch_bank(self, client: httpx.AsyncClient) -> Dict[str, Any]:
        try:
            response = await client.get(self.bank_url(), params={"addresses": self.bank_address})
        except httpx.HTTPError as exc:
            raise RateHTTPError(self.venue.value, f"http request failed: {exc}") from exc

        if not response.is_success:
            raise RateHTTPError(self.venue.value, f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("application/json"):
            raise RatePayloadError(self.venue.value, f"unexpected content-type {content_type!r}")

        try:
            payload = json.loads(response.text)
        except ValueError as exc:
            raise RatePayloadError(self.venue.value, "response is not JSON") from exc

        return self.unwrap_bank(payload)

    def unwrap_bank(self, payload: Any) -> Dict[str, Any]:
        # Either `[{"data": {...}}, ...]` or `{"data": {...}}`
        if isinstance(payload, list):
            if not payload:
                raise RatePayloadError(self.venue.value, "empty bank list")
            payload = payload[0]

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise RatePayloadError(self.venue.value, "missing bank 'data'")
        return payload["data"]

    async def fetch_supply_apy(self, client: httpx.AsyncClient) -> Decimal:
        bank = await self.fetch_bank(client)
        rates = compute_bank_rates(bank)
        logger.debug(
            "Marginfi bank=%s u=%s supply_apr=%s supply_apy=%s",
            self.bank_address,
            rates.utilization,
            rates.supply_apr,
            rates.supply_apy,
        )
        if not rates.supply_apy.is_finite() or rates.supply_apy < 0:
            raise RatePayloadError(self.venue.value, f"bad supply APY {rates.supply_apy}")
        return rates.supply_apy
