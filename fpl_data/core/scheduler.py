"""
Periodic refresh of the local FPL cache.

The synchronizer never retries on its own; this scheduler is the retry
policy. Each run is a full refresh. A failed run is logged and the previous
snapshot stays published until the next run succeeds.

Scheduler: APScheduler (AsyncIOScheduler, shares the data layer's event loop)
"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fpl_data.core import metrics
from fpl_data.core.exceptions import RefreshError
from fpl_data.core.logging import get_logger

logger = get_logger(__name__)

REFRESH_JOB_ID = "fpl_refresh"


class RefreshScheduler:
    """Runs repository.refresh() on a fixed interval."""

    def __init__(self, repository, interval_minutes: Optional[int] = None):
        """
        Args:
            repository: FantasyPremierLeagueRepository to refresh
            interval_minutes: Minutes between runs, defaults to
                settings.REFRESH_INTERVAL_MINUTES
        """
        if interval_minutes is None:
            from fpl_data.core.config import settings
            interval_minutes = settings.REFRESH_INTERVAL_MINUTES

        self.repository = repository
        self.interval_minutes = interval_minutes
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    def start(self):
        """Start the scheduler. Must be called from the event loop."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Never two refreshes at once
                'misfire_grace_time': 300
            }
        )
        self.scheduler.add_job(
            self.refresh_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=REFRESH_JOB_ID,
            name='Refresh FPL cache',
        )
        self.scheduler.start()
        self.running = True
        metrics.scheduler_running.set(1)
        logger.info(f"Scheduled: cache refresh every {self.interval_minutes} minutes")

    def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        metrics.scheduler_running.set(0)
        logger.info("Scheduler stopped")

    async def refresh_job(self):
        """Scheduled job body. Failures are logged, never raised."""
        try:
            result = await self.repository.refresh()
            logger.info(
                f"Scheduled refresh: {result['teams']} teams, {result['players']} players, "
                f"{result['fixtures']} fixtures ({result['duration_ms']}ms)"
            )
        except RefreshError as e:
            logger.error(f"Scheduled refresh failed, keeping last snapshot: {e}")
