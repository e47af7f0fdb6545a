import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from core.config import settings
from core.database import async_session_maker
from ingestion.runner import PortfolioIngestRunner

logger = logging.getLogger(__name__)


class IngestionScheduler:
    def __init__(self, session_factory=None, cron: str = None):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.session_factory = session_factory or async_session_maker
        self.cron = cron or settings.INGEST_CRON

    async def run_ingest_job(self):
        """Job to run one portfolio ingestion"""
        logger.info("Scheduler: Starting portfolio ingestion job")
        async with self.session_factory() as session:
            try:
                result = await PortfolioIngestRunner(session).ingest_all()
            except Exception as e:
                logger.error(f"Scheduler: ingestion job failed - {e}")
                return None

        if result.status != "completed":
            logger.error(f"Scheduler: ingestion run {result.run_id} finished with status {result.status}")
        elif not result.is_complete:
            logger.warning(
                f"Scheduler: ingestion run {result.run_id} incomplete - "
                f"{result.counts.fetched}/{result.source_meta.total_from_source} companies"
            )
        return result

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_ingest_job,
            trigger=CronTrigger.from_crontab(self.cron, timezone="UTC"),
            id="portfolio_ingest",
            max_instances=1,  # never overlap two runs
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Ingestion scheduler started (cron: {self.cron})")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Ingestion scheduler stopped")
