"""
Health check endpoint with database and sync status
"""

from fastapi import APIRouter, Depends
from api.dependencies import get_store
from schemas.api import HealthCheckResponse, ResourceSyncInfo
from ingestion.store import PostgresStore
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(store: PostgresStore = Depends(get_store)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Latest sync outcome for every mirrored resource
    """
    db_connected = False

    try:
        await store.ping()
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    resources = []
    if db_connected:
        try:
            resources = [ResourceSyncInfo(**row) for row in await store.sync_summary()]
        except Exception as e:
            logger.error(f"Failed to fetch sync summary: {str(e)}")

    return HealthCheckResponse.evaluate(db_connected, resources)
