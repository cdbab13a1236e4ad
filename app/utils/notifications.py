"""
Operator alerts (Telegram).

Alerts are best effort: a missing configuration or a Telegram outage is
logged and reported as False, never raised into the rebalance tick.
"""

import logging
from typing import Optional

import httpx

from app.config import settings
from app.domain.models import MigrationReport

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE = 4096

ALERT_TIERS = ("ACTIONABLE", "FAILED", "INFO")


def format_tiered_message(tier: str, title: str, body: str) -> str:
    prefix = (tier or "").upper()
    if prefix not in ALERT_TIERS:
        prefix = "INFO"
    return f"[{prefix}] {title}\n\n{body}".strip()


def format_migration_report(report: MigrationReport) -> str:
    lines = [
        f"{report.from_strategy.value} -> {report.to_strategy.value}",
        f"Outcomes: {report.outcome_counts() or 'no tracked accounts'}",
    ]
    for failure in report.failures:
        lines.append(f"- {failure.account}: {failure.outcome.value} ({failure.error})")
    return "\n".join(lines)


def _truncate(text: str) -> str:
    if len(text) <= TELEGRAM_MAX_MESSAGE:
        return text
    marker = "\n… (truncated)"
    return text[: TELEGRAM_MAX_MESSAGE - len(marker)] + marker


async def send_telegram_message(text: str, client: Optional[httpx.AsyncClient] = None) -> bool:
    """Send a Telegram message if alerts are enabled and bot token + chat ID are configured."""
    if not settings.TELEGRAM_ENABLED:
        return False

    token = settings.TELEGRAM_BOT_TOKEN
    chat_id = settings.TELEGRAM_CHAT_ID
    if not token or not chat_id:
        logger.info("Telegram alert skipped (missing TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID)")
        return False

    url = f"{TELEGRAM_API_BASE}/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": _truncate(text), "disable_web_page_preview": True}

    try:
        if client is not None:
            resp = await client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=15.0) as own_client:
                resp = await own_client.post(url, json=payload)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error(f"Telegram alert failed: {exc}")
        return False
    return True


async def send_tiered_telegram_message(tier: str, title: str, body: str) -> bool:
    return await send_telegram_message(format_tiered_message(tier=tier, title=title, body=body))
