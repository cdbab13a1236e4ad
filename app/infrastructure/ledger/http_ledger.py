"""
Ledger client for a transaction relay.

The relay builds, submits and confirms the vault program instructions; this
client only asks for an operation and returns the signature it reports.
Requests are authenticated by signing the canonical JSON payload with the
operator key.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.errors import LedgerError, LedgerTimeout
from app.domain.models import Strategy
from app.infrastructure.solana.keys import OperatorKey

logger = logging.getLogger(__name__)


class HttpLedger:
    def __init__(
        self,
        base_url: str,
        operator: OperatorKey,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.operator = operator
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _headers(self, payload: Dict[str, Any]) -> Dict[str, str]:
        message = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        signature = base64.b64encode(self.operator.sign(message)).decode("ascii")
        return {
            "Accept": "application/json",
            "X-Keeper-Pubkey": self.operator.pubkey,
            "X-Keeper-Signature": signature,
        }

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers(payload)
        try:
            if method == "GET":
                response = self._client.get(path, params=payload, headers=headers)
            else:
                response = self._client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise LedgerTimeout(f"{path} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise LedgerError(f"{path} request failed: {exc}") from exc

        if not response.is_success:
            raise LedgerError(f"{path} HTTP {response.status_code}: {response.text[:300]}")

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(f"{path} returned non-JSON body") from exc
        if not isinstance(body, dict):
            raise LedgerError(f"{path} returned unexpected body")
        if body.get("error"):
            raise LedgerError(f"{path} failed: {body['error']}")
        return body

    def _tx(self, body: Dict[str, Any], path: str) -> str:
        tx = body.get("tx") or body.get("signature")
        if not isinstance(tx, str) or not tx:
            raise LedgerError(f"{path} reply has no transaction signature")
        return tx

    def deposit(self, account: str, venue: Strategy, amount: int) -> str:
        logger.info("Ledger deposit user=%s venue=%s amount=%d", account, venue.value, amount)
        body = self._request("POST", "/deposit", {"user": account, "venue": venue.value, "amount": amount})
        return self._tx(body, "/deposit")

    def withdraw(self, account: str, venue: Strategy) -> str:
        logger.info("Ledger withdraw user=%s venue=%s", account, venue.value)
        body = self._request("POST", "/withdraw", {"user": account, "venue": venue.value})
        return self._tx(body, "/withdraw")

    def balance_of(self, account: str, venue: Optional[Strategy] = None) -> int:
        payload = {"user": account, "venue": venue.value if venue else "vault"}
        body = self._request("GET", "/balance", payload)
        amount = body.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, (int, str)):
            raise LedgerError("/balance reply has no amount")
        try:
            value = int(amount)
        except ValueError as exc:
            raise LedgerError(f"/balance reply has bad amount {amount!r}") from exc
        if value < 0:
            raise LedgerError(f"/balance reply has negative amount {value}")
        return value
