"""
Process-scoped cache for the gateway schema catalog.

The cache is an explicit value injected into the runner rather than module
state, so tests can drive expiry with a fake clock.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from core.exceptions import MirrorException, SchemaDiscoveryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CachedValue(Generic[T]):
    value: T
    fetched_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl


class SchemaCache(Generic[T]):
    """
    Time-limited cache around an async loader.

    Args:
        loader: Coroutine function producing a fresh value
        ttl: Seconds a value stays valid
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        ttl: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.loader = loader
        self.ttl = ttl
        self.clock = clock
        self.entry: Optional[CachedValue[T]] = None
        self._lock = asyncio.Lock()

    async def get(self) -> T:
        """Return the cached value, refreshing it when expired."""
        async with self._lock:
            now = self.clock()
            if self.entry is not None and self.entry.is_fresh(now):
                return self.entry.value

            logger.info("Refreshing schema catalog")
            try:
                value = await self.loader()
            except MirrorException as e:
                if isinstance(e, SchemaDiscoveryError):
                    raise
                raise SchemaDiscoveryError(
                    "Schema discovery failed",
                    context={"cached": self.entry is not None},
                    original_exception=e
                )

            self.entry = CachedValue(value=value, fetched_at=now, ttl=self.ttl)
            return value

    def invalidate(self):
        self.entry = None
