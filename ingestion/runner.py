"""
Mirror Runner - discovers endpoints and runs one full synchronization.

Phases:
1. Ensure the engine-owned relations exist
2. Discover endpoints from the gateway schema catalog (cached)
3. Order them by dependency priority
4. Run resource syncs in waves
5. Build and deliver the report

Discovery failures are top-level errors and abort the run; everything
after that is per-resource and never aborts siblings.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from core.config import settings
from core.exceptions import SchemaDiscoveryError
from core.identifiers import RelationRegistry
from ingestion.report import ReportDelivery
from ingestion.scheduler import DependencyScheduler
from ingestion.schema_cache import SchemaCache
from ingestion.sync_log import SyncLog
from ingestion.synchronizer import ResourceSynchronizer
from schemas.catalog import LIST_SEGMENT, Catalog, EndpointOp
from schemas.sync import SyncReport

logger = logging.getLogger(__name__)

_NESTED_RESOURCE = re.compile(r"routing|bom", re.IGNORECASE)


def select_endpoints(catalog: Catalog) -> List[EndpointOp]:
    """
    Mirrorable operations: ``/api/`` lists plus routing and BOM endpoints.

    Catalogs list one entry per (path, method); the first entry per path wins.
    """
    selected = {}
    for op in catalog.operations:
        path = op.path
        if not path.startswith("/api/"):
            continue
        if not (LIST_SEGMENT.search(path) or _NESTED_RESOURCE.search(path)):
            continue
        selected.setdefault(path, op)
    return list(selected.values())


class MirrorRunner:
    """
    Top-level orchestrator for one run.

    Usage:
        async with GatewayClient() as gateway:
            runner = MirrorRunner(gateway, PostgresStore(engine))
            report = await runner.run()
    """

    def __init__(
        self,
        gateway,
        store,
        schema_cache: Optional[SchemaCache] = None,
        delivery: Optional[ReportDelivery] = None,
        concurrency: int = None,
        wave_pause: float = None
    ):
        self.gateway = gateway
        self.store = store
        self.schema_cache = schema_cache or SchemaCache(
            gateway.schema, ttl=settings.SCHEMA_CACHE_TTL_SECONDS
        )
        self.delivery = delivery or ReportDelivery()
        self.concurrency = concurrency or settings.SYNC_CONCURRENCY
        self.wave_pause = wave_pause

    async def discover(self) -> List[EndpointOp]:
        logger.info("Loading schema from gateway...")
        try:
            catalog = await self.schema_cache.get()
        except SchemaDiscoveryError:
            raise
        except Exception as e:
            raise SchemaDiscoveryError(
                "Schema discovery failed",
                context={"gateway": getattr(self.gateway, "base_url", None)},
                original_exception=e
            )
        return select_endpoints(catalog)

    def build_scheduler(self) -> DependencyScheduler:
        sync_log = SyncLog(self.store)
        synchronizer = ResourceSynchronizer(
            self.gateway,
            self.store,
            sync_log=sync_log,
            registry=RelationRegistry()
        )
        return DependencyScheduler(synchronizer, sync_log, wave_pause=self.wave_pause)

    async def run(self) -> SyncReport:
        started_at = datetime.now(timezone.utc)

        await self.store.ensure_system_tables()

        endpoints = await self.discover()
        scheduler = self.build_scheduler()
        ordered = scheduler.order(endpoints)
        logger.info(f"Discovered {len(ordered)} resources, dependency-ordered.")

        outcomes = await scheduler.run(ordered, concurrency=self.concurrency)

        report = SyncReport.from_outcomes(outcomes, started_at=started_at)
        await self.delivery.deliver(report)

        logger.info(f"Mirror sync with reporting complete {report.finished_at.isoformat()}")
        return report
