"""
SCHEDULER JOB DEFINITIONS

Jobs are thin wrappers that:
- Log execution
- Call the rebalance controller
- Send notifications

NO business logic is allowed here. A failing tick never propagates: the
previous strategy simply stays in force until the next tick.
"""

import logging
from typing import Awaitable, Callable, Optional

from app.core.errors import EvaluationInProgress, RateFetchError
from app.domain.models import EvaluationResult
from app.domain.services.rebalance_controller import RebalanceController
from app.utils.notifications import format_migration_report, send_tiered_telegram_message

_logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, str], Awaitable[bool]]


# -------------------------------------------------------------------
# REBALANCE TICK
# -------------------------------------------------------------------

async def run_rebalance_job(
    controller: RebalanceController,
    notify: Notifier = send_tiered_telegram_message,
) -> Optional[EvaluationResult]:
    """
    One controller evaluation. Returns the result, or None when the tick failed
    or was skipped.
    """
    _logger.info("🔄 Running rebalance tick")

    try:
        result = await controller.evaluate_once()
    except EvaluationInProgress:
        _logger.warning("⏭️  Rebalance tick skipped: previous evaluation still running")
        return None
    except RateFetchError as exc:
        _logger.error(f"❌ Rebalance tick failed, strategy unchanged: {exc}")
        await notify("FAILED", "Rebalance tick failed", str(exc))
        return None
    except Exception as exc:
        _logger.exception(f"❌ Rebalance tick failed unexpectedly: {exc}")
        await notify("FAILED", "Rebalance tick failed", repr(exc))
        return None

    if result.flipped and result.report is not None:
        tier = "FAILED" if result.report.failures else "ACTIONABLE"
        await notify(tier, "Strategy flipped", format_migration_report(result.report))
        _logger.info(f"✅ Rebalance tick complete: now {result.desired.value}")
    else:
        _logger.info(f"✅ Rebalance tick complete: staying on {result.current.value}")
    return result
