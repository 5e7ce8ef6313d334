"""
Dependency-ordered, wave-based execution of resource syncs.

Endpoints are sorted by a fixed priority table so parents are mirrored
before the parameterized endpoints that fan out over them, then run in
waves: every sync in a wave runs concurrently and wave N+1 starts only once
wave N has fully settled.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Sequence, Union

from core.config import settings
from core.identifiers import RelationName, sanitize
from core.exceptions import InvalidIdentifierError
from ingestion.sync_log import SyncLog
from schemas.catalog import EndpointOp
from schemas.sync import SyncOutcome

logger = logging.getLogger(__name__)

PRIORITY = (
    "items",
    "item-boms",
    "routing",
    "jobs",
    "workorders",
    "inventory",
    "materials",
    "customers",
    "vendors",
)

UNRANKED = len(PRIORITY)


def priority_rank(path: str) -> int:
    """Index of the first priority keyword found in the path; unmatched sort last"""
    lowered = path.lower()
    for index, keyword in enumerate(PRIORITY):
        if keyword in lowered:
            return index
    return UNRANKED


def _path_of(item: Union[str, EndpointOp]) -> str:
    return item if isinstance(item, str) else item.path


class DependencyScheduler:
    """
    Orders endpoints and runs their syncs in bounded-concurrency waves.

    Args:
        synchronizer: Object with an async ``sync(endpoint)`` method
        sync_log: Where per-resource failures are recorded
        wave_pause: Seconds slept between waves
        sleep: Awaitable used for the pause, injectable for tests
    """

    def __init__(
        self,
        synchronizer,
        sync_log: SyncLog,
        wave_pause: float = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.synchronizer = synchronizer
        self.sync_log = sync_log
        self.wave_pause = settings.WAVE_PAUSE_SECONDS if wave_pause is None else wave_pause
        self.sleep = sleep

    @staticmethod
    def order(items: Sequence[Union[str, EndpointOp]]) -> List[Union[str, EndpointOp]]:
        # sorted() is stable, so ties keep discovery order
        return sorted(items, key=lambda item: priority_rank(_path_of(item)))

    async def _run_one(self, endpoint: EndpointOp) -> SyncOutcome:
        try:
            return await self.synchronizer.sync(endpoint)
        except Exception as e:
            try:
                resource = RelationName.for_path(endpoint.path)
            except InvalidIdentifierError:
                resource = sanitize(endpoint.path) or endpoint.path
            logger.error(f"✗ {resource} failed: {e}")
            return await self.sync_log.record_failure(resource, endpoint.path, e)

    async def run(self, endpoints: Sequence[EndpointOp], concurrency: int = None) -> List[SyncOutcome]:
        """
        Run ordered endpoints wave by wave.

        Returns:
            One outcome per endpoint, in execution order. Failures are
            zero-row outcomes carrying the error.
        """
        concurrency = max(1, concurrency or settings.SYNC_CONCURRENCY)
        waves = [endpoints[i:i + concurrency] for i in range(0, len(endpoints), concurrency)]
        outcomes: List[SyncOutcome] = []

        for number, wave in enumerate(waves, start=1):
            logger.info(
                f"→ Running batch {number}/{len(waves)} "
                f"({', '.join(endpoint.path for endpoint in wave)})"
            )
            results = await asyncio.gather(*(self._run_one(endpoint) for endpoint in wave))
            outcomes.extend(results)

            if number < len(waves):
                await self.sleep(self.wave_pause)

        return outcomes
