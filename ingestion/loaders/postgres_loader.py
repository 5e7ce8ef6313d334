"""
Append mirrored payloads into PostgreSQL in bounded batches
"""

import asyncio
import logging
from typing import Any, List, Sequence

from core.config import settings
from core.exceptions import LoadError, MirrorException
from core.identifiers import RelationName

logger = logging.getLogger(__name__)


class PostgresLoader:
    """
    Idempotent batch writer for mirrored resources.

    Ensures:
    - The relation exists before writing (CREATE IF NOT EXISTS)
    - Batches run sequentially; rows inside a batch are written concurrently
      over several pooled connections
    - Derived id/createdutc columns and the id index exist afterwards

    Records are appended, never upserted: overlapping incremental windows
    produce duplicate payloads that downstream consumers can collapse on the
    derived id column.
    """

    def __init__(self, store, batch_size: int = None, insert_concurrency: int = None):
        self.store = store
        self.batch_size = batch_size or settings.WRITE_BATCH_SIZE
        self.insert_concurrency = max(1, insert_concurrency or settings.INSERT_CONCURRENCY)

    def _split(self, batch: Sequence[Any]) -> List[Sequence[Any]]:
        size = -(-len(batch) // self.insert_concurrency)
        return [batch[i:i + size] for i in range(0, len(batch), size)]

    async def save(self, resource: RelationName, records: Sequence[Any]) -> int:
        """
        Append records to the resource relation.

        Args:
            resource: Validated relation name
            records: Upstream objects, stored as opaque JSONB payloads

        Returns:
            Number of records written
        """
        resource = RelationName(resource)
        written = 0

        try:
            await self.store.ensure_relation(resource)

            for i in range(0, len(records), self.batch_size):
                batch = records[i:i + self.batch_size]
                counts = await asyncio.gather(
                    *(self.store.append(resource, chunk) for chunk in self._split(batch))
                )
                written += sum(counts)
                logger.debug(f"{resource}: batch {i // self.batch_size + 1} wrote {sum(counts)} rows")

            await self.store.ensure_projections(resource)

        except MirrorException as e:
            raise LoadError(
                f"Failed to save {resource}",
                context={
                    "table_name": str(resource),
                    "records_to_load": len(records),
                    "records_written": written,
                },
                original_exception=e
            )

        logger.info(f"Saved {written} rows into {resource}")
        return written
