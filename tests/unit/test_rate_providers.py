from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from app.core.errors import EmptyHistory, RateFetchError, RateHTTPError, RatePayloadError
from app.domain.indicators.fixed_point import encode_i80f48
from app.domain.indicators.interest_curve import apr_to_apy
from app.domain.models import Strategy
from app.infrastructure.rates.kamino_provider import KaminoProvider
from app.infrastructure.rates.marginfi_provider import MarginfiProvider, compute_bank_rates
from app.infrastructure.rates.rate_oracle import RateOracle


def _fp(value: str) -> dict:
    return {"value": encode_i80f48(Decimal(value))}


def _bank(asset_shares: str = "1000", liability_shares: str = "375", **overrides) -> dict:
    rate_config = {
        "optimalUtilizationRate": _fp("0.75"),
        "plateauInterestRate": _fp("0.125"),
        "maxInterestRate": _fp("1"),
        "protocolFixedFeeApr": _fp("0.0078125"),
        "protocolIrFee": _fp("0.25"),
    }
    rate_config.update(overrides)
    return {
        "config": {"interestRateConfig": rate_config},
        "assetShareValue": _fp("1"),
        "liabilityShareValue": _fp("1"),
        "totalAssetShares": _fp(asset_shares),
        "totalLiabilityShares": _fp(liability_shares),
    }


def _kamino() -> KaminoProvider:
    return KaminoProvider("https://kamino.test/", market="MARKET", reserve="RESERVE", lookback_hours=12)


def _marginfi() -> MarginfiProvider:
    return MarginfiProvider("https://marginfi.test/api", bank_address="BANK")


# ----------------------------------------------------------------------
# Kamino
# ----------------------------------------------------------------------

def test_kamino_history_url_and_window():
    provider = _kamino()
    assert provider.history_url() == (
        "https://kamino.test/kamino-market/MARKET/reserves/RESERVE/metrics/history"
    )
    end = datetime(2026, 3, 1, 12, 30, 15, 999, tzinfo=timezone.utc)
    assert provider.window(end) == {"start": "2026-03-01T00:30:15Z", "end": "2026-03-01T12:30:15Z"}


def test_kamino_uses_last_history_point():
    payload = {
        "history": [
            {"timestamp": "a", "metrics": {"supplyInterestAPY": 0.01}},
            {"timestamp": "b", "metrics": {"supplyInterestAPY": 0.0412}},
        ]
    }
    assert _kamino().parse_history(payload) == Decimal("0.0412")


def test_kamino_missing_apy_defaults_to_zero():
    assert _kamino().parse_history({"history": [{"metrics": {}}]}) == Decimal("0")


def test_kamino_empty_history_is_an_error():
    with pytest.raises(EmptyHistory, match="12h"):
        _kamino().parse_history({"history": []})


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"history": "nope"},
        {"history": [{"timestamp": "a"}]},
        {"history": [{"metrics": {"supplyInterestAPY": "abc"}}]},
        {"history": [{"metrics": {"supplyInterestAPY": -0.1}}]},
    ],
)
def test_kamino_malformed_payloads(payload):
    with pytest.raises(RatePayloadError):
        _kamino().parse_history(payload)


@pytest.mark.asyncio
async def test_kamino_fetch_sends_window_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"history": [{"metrics": {"supplyInterestAPY": 0.05}}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        apy = await _kamino().fetch_supply_apy(client)

    assert apy == Decimal("0.05")
    assert seen["path"].endswith("/reserves/RESERVE/metrics/history")
    assert set(seen["params"]) == {"start", "end"}


@pytest.mark.asyncio
async def test_kamino_http_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(RateHTTPError, match="HTTP 502"):
            await _kamino().fetch_supply_apy(client)


# ----------------------------------------------------------------------
# Marginfi
# ----------------------------------------------------------------------

def test_bank_rates_follow_the_curve():
    rates = compute_bank_rates(_bank())

    assert rates.utilization == Decimal("0.375")
    assert rates.base_rate == Decimal("0.0625")
    assert rates.supply_apr == Decimal("0.0234375")
    assert rates.borrow_apr == Decimal("0.0859375")
    assert rates.supply_apy == apr_to_apy(Decimal("0.0234375"))


def test_bank_with_no_assets_has_zero_supply_apy():
    rates = compute_bank_rates(_bank(asset_shares="0", liability_shares="0"))
    assert rates.utilization == Decimal("0")
    assert rates.supply_apy == Decimal("0")


def test_bank_missing_curve_field_is_a_payload_error():
    bank = _bank()
    del bank["config"]["interestRateConfig"]["maxInterestRate"]
    with pytest.raises(RatePayloadError, match="maxInterestRate"):
        compute_bank_rates(bank)


def test_unwrap_bank_accepts_list_and_object():
    provider = _marginfi()
    bank = _bank()
    assert provider.unwrap_bank([{"data": bank}]) == bank
    assert provider.unwrap_bank({"data": bank}) == bank
    with pytest.raises(RatePayloadError):
        provider.unwrap_bank([])
    with pytest.raises(RatePayloadError):
        provider.unwrap_bank({"address": "BANK"})


@pytest.mark.asyncio
async def test_marginfi_fetch_queries_bank_address():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=[{"data": _bank()}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        apy = await _marginfi().fetch_supply_apy(client)

    assert seen["url"].path == "/api/bankData/rawBankData"
    assert seen["url"].params["addresses"] == "BANK"
    assert apy == apr_to_apy(Decimal("0.0234375"))


@pytest.mark.asyncio
async def test_marginfi_rejects_non_json_content_type():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})
    )
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(RatePayloadError, match="content-type"):
            await _marginfi().fetch_supply_apy(client)


@pytest.mark.asyncio
async def test_marginfi_negative_supply_apy_is_a_payload_error():
    bank = _bank(plateauInterestRate=_fp("-0.125"))
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": bank}))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(RatePayloadError, match="bad supply APY") as excinfo:
            await _marginfi().fetch_supply_apy(client)
    assert excinfo.value.venue == "Marginfi"


# ----------------------------------------------------------------------
# Oracle
# ----------------------------------------------------------------------

def _oracle(handler) -> RateOracle:
    return RateOracle(
        providers={Strategy.KAMINO: _kamino(), Strategy.MARGINFI: _marginfi()},
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_oracle_samples_both_venues():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "kamino.test":
            return httpx.Response(200, json={"history": [{"metrics": {"supplyInterestAPY": 0.05}}]})
        return httpx.Response(200, json={"data": _bank()})

    samples = await _oracle(handler).sample_all()

    assert samples[Strategy.KAMINO].apy == Decimal("0.05")
    assert samples[Strategy.MARGINFI].apy == apr_to_apy(Decimal("0.0234375"))
    assert samples[Strategy.KAMINO].venue == Strategy.KAMINO


@pytest.mark.asyncio
async def test_oracle_propagates_single_venue_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "kamino.test":
            return httpx.Response(200, json={"history": [{"metrics": {"supplyInterestAPY": 0.05}}]})
        return httpx.Response(503)

    with pytest.raises(RateHTTPError) as excinfo:
        await _oracle(handler).sample_all()
    assert excinfo.value.venue == "Marginfi"


def test_oracle_requires_both_providers():
    with pytest.raises(ValueError, match="Marginfi"):
        RateOracle(providers={Strategy.KAMINO: _kamino()})


def _venue_handler(requested, marginfi_status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.host)
        if request.url.host == "kamino.test":
            return httpx.Response(200, json={"history": [{"metrics": {"supplyInterestAPY": 0.05}}]})
        if marginfi_status != 200:
            return httpx.Response(marginfi_status)
        return httpx.Response(200, json={"data": _bank()})

    return handler


@pytest.mark.asyncio
async def test_oracle_samples_a_single_venue():
    requested = []
    oracle = _oracle(_venue_handler(requested))

    kamino = await oracle.sample(Strategy.KAMINO)
    assert requested == ["kamino.test"]
    assert kamino.venue == Strategy.KAMINO
    assert kamino.apy == Decimal("0.05")

    marginfi = await oracle.sample(Strategy.MARGINFI)
    assert requested == ["kamino.test", "marginfi.test"]
    assert marginfi.venue == Strategy.MARGINFI
    assert marginfi.apy == apr_to_apy(Decimal("0.0234375"))


@pytest.mark.asyncio
async def test_oracle_failing_venue_leaves_other_sample_intact():
    oracle = _oracle(_venue_handler([], marginfi_status=503))

    with pytest.raises(RateHTTPError, match="HTTP 503"):
        await oracle.sample(Strategy.MARGINFI)

    kamino = await oracle.sample(Strategy.KAMINO)
    assert kamino.apy == Decimal("0.05")


@pytest.mark.asyncio
async def test_oracle_reports_negative_marginfi_apy_as_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "kamino.test":
            return httpx.Response(200, json={"history": [{"metrics": {"supplyInterestAPY": 0.05}}]})
        return httpx.Response(200, json={"data": _bank(plateauInterestRate=_fp("-0.125"))})

    with pytest.raises(RateFetchError) as excinfo:
        await _oracle(handler).sample_all()
    assert excinfo.value.venue == "Marginfi"
