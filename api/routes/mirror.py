"""
Read-only access to mirrored data and sync history
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import List
from api.dependencies import get_store
from core.exceptions import InvalidIdentifierError
from core.identifiers import RelationName, RESERVED_RELATIONS
from ingestion.store import PostgresStore
from schemas.api import ResourceSyncInfo, SyncLogRecord, ResourceRowsResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/mirror", tags=["Mirror"])


@router.get("/summary", response_model=List[ResourceSyncInfo])
async def get_summary(store: PostgresStore = Depends(get_store)):
    """Latest row count and sync time per resource"""
    return [ResourceSyncInfo(**row) for row in await store.sync_summary()]


@router.get("/logs", response_model=List[SyncLogRecord])
async def get_logs(
    limit: int = Query(50, ge=1, le=500, description="Number of log rows"),
    store: PostgresStore = Depends(get_store)
):
    """Most recent sync log rows"""
    return [SyncLogRecord(**row) for row in await store.recent_sync_log(limit)]


@router.get("/{resource}", response_model=ResourceRowsResponse)
async def get_resource(
    resource: str,
    request: Request,
    limit: int = Query(500, ge=1, le=500, description="Maximum rows"),
    store: PostgresStore = Depends(get_store)
):
    """Mirrored payloads of one resource"""
    request_id = getattr(request.state, "request_id", "-")

    try:
        name = RelationName(resource)
    except InvalidIdentifierError:
        raise HTTPException(status_code=404, detail=f"Table {resource} not found")

    if name in RESERVED_RELATIONS or not await store.relation_exists(name):
        raise HTTPException(status_code=404, detail=f"Table {resource} not found")

    rows = await store.sample_payloads(name, limit)
    logger.info(f"[{request_id}] GET /mirror/{name} returned {len(rows)} rows")

    return ResourceRowsResponse(resource=str(name), count=len(rows), rows=rows)
