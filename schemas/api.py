"""
Pydantic schemas for the read-only mirror API
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Health Check Schemas
# ============================================================================

class ResourceSyncInfo(BaseModel):
    """Latest sync of one resource"""
    resource: str
    rowcount: int
    synced_at: Optional[datetime]
    errors: List[Any] = Field(default_factory=list)

    class Config:
        from_attributes = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_now)
    database_connected: bool
    resources: List[ResourceSyncInfo] = Field(default_factory=list)
    total_resources: int = 0
    failed_resources: int = 0

    @classmethod
    def evaluate(cls, database_connected: bool, resources: List[ResourceSyncInfo]) -> "HealthCheckResponse":
        """Derive the overall status from connectivity and latest sync errors"""
        failed = sum(1 for resource in resources if resource.errors)
        if not database_connected:
            status = "unhealthy"
        elif failed:
            status = "degraded"
        else:
            status = "healthy"
        return cls(
            status=status,
            database_connected=database_connected,
            resources=resources,
            total_resources=len(resources),
            failed_resources=failed
        )


# ============================================================================
# Mirror Schemas
# ============================================================================

class SyncLogRecord(BaseModel):
    """One sync log row"""
    resource: str
    rowcount: int
    synced_at: Optional[datetime]
    fingerprint: Optional[str] = None
    watermark: Optional[datetime] = None
    errors: List[Any] = Field(default_factory=list)


class ResourceRowsResponse(BaseModel):
    """Mirrored payloads of one resource"""
    resource: str
    count: int
    rows: List[Any] = Field(default_factory=list)
