"""
Pydantic schemas for validation and serialization.

Schemas:
    catalog: Gateway schema catalog and endpoint descriptors
    sync: Per-resource sync outcomes and the end-of-run report
    api: Read-only API response models

Usage:
    from schemas.catalog import Catalog, EndpointOp
    from schemas.sync import SyncOutcome, SyncReport

Example:
    op = EndpointOp.model_validate({"path": "/api/jobs/list", "isList": True})
    op.relation     # "jobs_list"
    op.placeholder  # None
"""

__all__ = [
    "EndpointOp",
    "CatalogResource",
    "Catalog",
    "SyncOutcome",
    "SyncReport",
    "HealthCheckResponse",
    "ResourceSyncInfo",
    "SyncLogRecord",
    "ResourceRowsResponse",
]
