"""
PostgreSQL storage primitives for the mirror engine.

Every statement borrows its own connection from the shared engine and
commits on its own; there are no cross-statement transactions, so a crash
can leave a relation partially populated and recovery is an idempotent
re-run.

Only RelationName values are interpolated into statement text. Values
always travel as bound parameters.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, text, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from core.exceptions import DatabaseError
from core.identifiers import RelationName
from models.base import Base
from models.resource_metadata import ResourceMetadata
from models.sync_log import SyncLogEntry

logger = logging.getLogger(__name__)


class PostgresStore:
    """Storage collaborator: relation creation, append and query primitives."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _execute(self, statement, params=None, operation: str = "EXECUTE", table: str = None):
        try:
            async with self.engine.begin() as conn:
                if params is None:
                    return await conn.execute(statement)
                return await conn.execute(statement, params)
        except Exception as e:
            raise DatabaseError(
                f"{operation} failed on {table or 'database'}",
                context={"operation": operation, "table_name": table},
                original_exception=e
            )

    async def ping(self):
        await self._execute(text("SELECT 1"), operation="SELECT")

    # ------------------------------------------------------------------
    # Engine-owned relations
    # ------------------------------------------------------------------

    async def ensure_system_tables(self):
        """Create mirror_log and mirror_meta if missing"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def append_sync_log(self, entry: Dict[str, Any]):
        await self._execute(
            insert(SyncLogEntry).values(
                resource=entry["resource"],
                rowcount=entry.get("rowcount", 0),
                synced_at=entry["synced_at"],
                hash=entry.get("fingerprint"),
                last_date=entry.get("watermark"),
                errors=entry.get("errors") or [],
            ),
            operation="INSERT",
            table=SyncLogEntry.__tablename__
        )

    async def latest_watermark(self, resource: str) -> Optional[datetime]:
        result = await self._execute(
            select(SyncLogEntry.last_date)
            .where(SyncLogEntry.resource == resource, SyncLogEntry.last_date.is_not(None))
            .order_by(SyncLogEntry.synced_at.desc())
            .limit(1),
            operation="SELECT",
            table=SyncLogEntry.__tablename__
        )
        return result.scalar_one_or_none()

    async def recent_sync_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self._execute(
            select(SyncLogEntry.__table__).order_by(SyncLogEntry.synced_at.desc()).limit(limit),
            operation="SELECT",
            table=SyncLogEntry.__tablename__
        )
        return [
            {
                "resource": row.resource,
                "rowcount": row.rowcount,
                "synced_at": row.synced_at,
                "fingerprint": row.hash,
                "watermark": row.last_date,
                "errors": row.errors or [],
            }
            for row in result.mappings().all()
        ]

    async def sync_summary(self) -> List[Dict[str, Any]]:
        """Latest log row per resource"""
        latest = (
            select(SyncLogEntry.resource, func.max(SyncLogEntry.synced_at).label("synced_at"))
            .group_by(SyncLogEntry.resource)
            .subquery()
        )
        result = await self._execute(
            select(SyncLogEntry.__table__)
            .join(
                latest,
                (SyncLogEntry.resource == latest.c.resource)
                & (SyncLogEntry.synced_at == latest.c.synced_at)
            )
            .order_by(SyncLogEntry.resource),
            operation="SELECT",
            table=SyncLogEntry.__tablename__
        )
        return [
            {
                "resource": row.resource,
                "rowcount": row.rowcount,
                "synced_at": row.synced_at,
                "errors": row.errors or [],
            }
            for row in result.mappings().all()
        ]

    async def upsert_metadata(
        self,
        name: RelationName,
        key_fields: Sequence[str],
        relationships: Dict[str, str]
    ):
        stmt = insert(ResourceMetadata).values(
            table_name=str(name),
            key_fields=list(key_fields),
            relationships=dict(relationships),
            last_discovered=func.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["table_name"],
            set_={
                "key_fields": stmt.excluded.key_fields,
                "relationships": stmt.excluded.relationships,
                "last_discovered": func.now(),
            }
        )
        await self._execute(stmt, operation="UPSERT", table=ResourceMetadata.__tablename__)

    # ------------------------------------------------------------------
    # Mirrored relations
    # ------------------------------------------------------------------

    async def relation_exists(self, name: RelationName) -> bool:
        result = await self._execute(
            text(
                "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = current_schema() AND table_name = :name)"
            ),
            {"name": str(name)},
            operation="SELECT",
            table="information_schema.tables"
        )
        return bool(result.scalar())

    async def ensure_relation(self, name: RelationName):
        name = RelationName(name)
        await self._execute(
            text(f"CREATE TABLE IF NOT EXISTS {name} (payload JSONB)"),
            operation="CREATE",
            table=name
        )

    async def append(self, name: RelationName, payloads: Sequence[Any]) -> int:
        """Insert payloads as one executemany on a single connection"""
        if not payloads:
            return 0
        name = RelationName(name)
        await self._execute(
            text(f"INSERT INTO {name} (payload) VALUES (CAST(:payload AS JSONB))"),
            [{"payload": json.dumps(payload, default=str)} for payload in payloads],
            operation="INSERT",
            table=name
        )
        return len(payloads)

    async def ensure_projections(self, name: RelationName):
        """Additive only: generated id/createdutc columns and the id index"""
        name = RelationName(name)
        await self._execute(
            text(
                f"ALTER TABLE {name} "
                f"ADD COLUMN IF NOT EXISTS id TEXT GENERATED ALWAYS AS (payload->>'id') STORED, "
                f"ADD COLUMN IF NOT EXISTS createdutc TEXT GENERATED ALWAYS AS (payload->>'createdUtc') STORED"
            ),
            operation="ALTER",
            table=name
        )
        await self._execute(
            text(f"CREATE INDEX IF NOT EXISTS {name.index_name} ON {name} (id)"),
            operation="CREATE INDEX",
            table=name
        )

    async def select_ids(self, name: RelationName, offset: int, limit: int) -> List[Any]:
        name = RelationName(name)
        result = await self._execute(
            text(
                f"SELECT payload->>'id' AS id FROM {name} "
                f"ORDER BY payload->>'id' OFFSET :offset LIMIT :limit"
            ),
            {"offset": offset, "limit": limit},
            operation="SELECT",
            table=name
        )
        return [row.id for row in result]

    async def sample_payloads(self, name: RelationName, limit: int = 25) -> List[Any]:
        name = RelationName(name)
        result = await self._execute(
            text(f"SELECT payload FROM {name} LIMIT :limit"),
            {"limit": limit},
            operation="SELECT",
            table=name
        )
        return [row.payload for row in result]
