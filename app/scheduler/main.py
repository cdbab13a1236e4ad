"""
Keeper Scheduler
Runs the rebalance evaluation once at startup and then on a fixed interval.
"""

import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.domain.services.rebalance_controller import RebalanceController
from app.scheduler.jobs import run_rebalance_job

logger = logging.getLogger(__name__)

REBALANCE_JOB_ID = "rebalance_tick"


class KeeperScheduler:
    """
    Single-job scheduler.

    Overlap and backlog are dropped, never queued: one instance at a time,
    missed runs coalesced, late runs past the grace period skipped.
    """

    def __init__(
        self,
        controller: RebalanceController,
        interval_seconds: int = 3600,
        misfire_grace_seconds: int = 30,
        timezone: str = "UTC",
    ):
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.misfire_grace_seconds = misfire_grace_seconds
        self.timezone = pytz.timezone(timezone)
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

    @property
    def running(self) -> bool:
        return bool(getattr(self.scheduler, "running", False))

    def start(self):
        """Start the scheduler"""
        logger.info("🚀 Starting keeper scheduler...")

        self.scheduler.add_job(
            run_rebalance_job,
            IntervalTrigger(seconds=self.interval_seconds, timezone=self.timezone),
            args=[self.controller],
            id=REBALANCE_JOB_ID,
            name="Rebalance Evaluation",
            # First run right away; the interval continues from there
            next_run_time=datetime.now(self.timezone),
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_seconds,
            replace_existing=True,
        )

        self.scheduler.start()
        for job in self.scheduler.get_jobs():
            logger.info(f"  • {job.name} - Next run: {job.next_run_time}")
        logger.info(f"✅ Scheduler started (every {self.interval_seconds}s)")

    def stop(self):
        """Stop the scheduler"""
        if not self.running:
            return
        logger.info("🛑 Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        logger.info("✅ Scheduler stopped")
