"""
Stream parent identifiers out of an already-mirrored relation.
"""

import logging
from typing import Any, AsyncIterator, List

from core.config import settings
from core.exceptions import ParentRelationMissingError
from core.identifiers import RelationName

logger = logging.getLogger(__name__)


class ParentIdStreamer:
    """
    Lazy, finite sequence of identifier batches.

    Each call to batches() restarts at offset zero and advances by
    batch_size until the relation returns an empty batch.
    """

    def __init__(self, store, relation: RelationName, batch_size: int = None):
        self.store = store
        self.relation = relation
        self.batch_size = batch_size or settings.PARENT_ID_BATCH_SIZE

    @classmethod
    def for_placeholder(cls, store, placeholder: str, batch_size: int = None) -> "ParentIdStreamer":
        return cls(store, RelationName.for_parent(placeholder), batch_size=batch_size)

    async def ensure_exists(self, path: str = None):
        if not await self.store.relation_exists(self.relation):
            raise ParentRelationMissingError(
                f"parent table {self.relation} not found",
                context={"path": path},
                parent=str(self.relation)
            )

    async def batches(self) -> AsyncIterator[List[Any]]:
        offset = 0
        while True:
            rows = await self.store.select_ids(self.relation, offset, self.batch_size)
            if not rows:
                return
            offset += len(rows)

            ids = [row for row in rows if row]
            logger.info(f"{self.relation}: processing {len(ids)} IDs (offset {offset - len(rows)})")
            if ids:
                yield ids
