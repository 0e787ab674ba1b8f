import logging
from datetime import datetime, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import build_engine, build_session_maker
from ingestion.extractors.s3_fetcher import S3PartitionFetcher
from ingestion.runner import IngestionRunner

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Periodically syncs the current UTC date (fetch + load)"""

    def __init__(self, interval_minutes: Optional[int] = None, fetcher: Optional[S3PartitionFetcher] = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES
        self.engine = build_engine()
        self.SessionLocal = build_session_maker(self.engine)
        self.fetcher = fetcher

    async def run_sync_job(self):
        """Job to sync today's partition"""
        today = datetime.now(timezone.utc).date()
        logger.info(f"Scheduler: Starting sync job for {today.isoformat()}")
        async with self.SessionLocal() as session:
            try:
                runner = IngestionRunner(session, fetcher=self.fetcher or S3PartitionFetcher())
                result = await runner.sync_dates([today])
                logger.info(f"Scheduler: Sync job finished with status {result['status']}")
            except Exception as e:
                logger.error(f"Scheduler: Sync job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="sync_job",
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info(f"Sync Scheduler started (every {self.interval_minutes} minutes)")

    async def stop(self):
        """Stop the scheduler and release its database connections"""
        self.scheduler.shutdown()
        await self.engine.dispose()
        logger.info("Sync Scheduler stopped")
