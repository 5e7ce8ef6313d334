import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import build_engine
from core.exceptions import MirrorException
from ingestion.gateway import GatewayClient
from ingestion.runner import MirrorRunner
from ingestion.schema_cache import SchemaCache
from ingestion.store import PostgresStore

logger = logging.getLogger(__name__)


class MirrorJob:
    """Runs the mirror on an interval inside a long-lived process"""

    def __init__(self, interval_minutes: int = None):
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler()
        self.engine = build_engine()
        self.store = PostgresStore(self.engine)
        self.gateway = GatewayClient()
        # Shared across runs so the catalog is fetched at most once per TTL
        self.schema_cache = SchemaCache(
            self.gateway.schema, ttl=settings.SCHEMA_CACHE_TTL_SECONDS
        )

    async def run_mirror_job(self):
        """Job to run one mirror sync"""
        logger.info("Scheduler: Starting mirror job")
        try:
            runner = MirrorRunner(self.gateway, self.store, schema_cache=self.schema_cache)
            report = await runner.run()
            logger.info(
                f"Scheduler: mirror job finished - {report.total_rows} rows, "
                f"{len(report.failures)} failures"
            )
        except MirrorException as e:
            logger.error(
                f"Scheduler: mirror job failed - {e.message}",
                extra={"error_context": e.to_dict()}
            )
        except Exception as e:
            logger.error(f"Scheduler: mirror job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_mirror_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="mirror_job",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info(f"Mirror scheduler started (every {self.interval_minutes} minutes)")

    async def stop(self):
        self.scheduler.shutdown()
        await self.gateway.close()
        await self.engine.dispose()
        logger.info("Mirror scheduler stopped")
