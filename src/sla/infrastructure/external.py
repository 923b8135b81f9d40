"""
SLA External Service Integrations
==================================

APScheduler wrapper that runs the SLA sweep in-process.
"""

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class SLAScheduler:
    """
    Wrapper for APScheduler for the background SLA sweep.

    Manages the lifecycle of the scheduler and jobs. An interval of 0
    leaves the scheduler off, for deployments driven by an external cron.
    """

    JOB_ID = "sla_sweep"

    def __init__(self, interval_seconds: int = 3600):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[object]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        if self.interval_seconds <= 0:
            logger.info("SLA scheduler disabled", extra={"interval_seconds": self.interval_seconds})
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Breach Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
