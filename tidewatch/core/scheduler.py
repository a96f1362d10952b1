import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timedelta, timezone
from typing import Optional

from tidewatch.features.common.exceptions.sync_exceptions import FetchError
from tidewatch.features.sync.services.sync_coordinator import SyncCoordinator
from tidewatch.features.timeline.services.timeline_service import TimelineService
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "tide_refresh"
WAKE_JOB_ID = "timeline_wake"

class Scheduler:
    """Drives periodic refreshes and, on the watch, timeline wake-ups."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        timeline_service: Optional[TimelineService] = None
    ):
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.coordinator = coordinator
        self.timeline_service = timeline_service

    def start(self):
        """Start the scheduler with configured jobs."""
        logger.info("Starting scheduler")

        self.scheduler.add_job(
            self.refresh,
            IntervalTrigger(minutes=settings.refresh_interval_minutes),
            id=REFRESH_JOB_ID,
            name='tide_refresh',
            next_run_time=datetime.now(timezone.utc)
        )

        if self.timeline_service:
            self.schedule_wake(self.timeline_service.next_wake_time())

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    async def refresh(self) -> None:
        """Periodic refresh; skipped while another refresh is still running."""
        if self.coordinator.refresh_in_progress:
            logger.warning("Refresh already in progress, skipping")
            return

        if self.timeline_service:
            await self.timeline_service.on_wake()
            return

        try:
            await self.coordinator.refresh()
        except FetchError as e:
            logger.warning(f"Scheduled refresh failed, will retry next cycle: {str(e)}")

    async def wake(self) -> None:
        """Requested timeline update: refresh, then book the next wake."""
        succeeded = await self.timeline_service.on_wake()
        now = datetime.now(timezone.utc)
        if succeeded:
            next_wake = self.timeline_service.next_wake_time(now)
        else:
            next_wake = now + timedelta(minutes=settings.retry_interval_minutes)
        self.schedule_wake(next_wake)

    def schedule_wake(self, run_date: datetime) -> None:
        now = datetime.now(timezone.utc)
        if run_date <= now:
            # Nothing cached beyond now; try again after the retry interval
            run_date = now + timedelta(minutes=settings.retry_interval_minutes)
        self.scheduler.add_job(
            self.wake,
            DateTrigger(run_date=run_date),
            id=WAKE_JOB_ID,
            name='timeline_wake',
            replace_existing=True
        )
        logger.info(f"Next timeline wake at {run_date.isoformat()}")

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler.running:
            logger.info("Shutting down scheduler")
            self.scheduler.shutdown()
            logger.info("Scheduler shutdown complete")
