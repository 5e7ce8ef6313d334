"""
SQLAlchemy ORM models for the relations the mirror engine owns.

Models:
    base: Base declarative class and the SyncStatus enum
    sync_log: Append-only sync history with watermarks (mirror_log)
    resource_metadata: Inferred key fields and relationships (mirror_meta)

Mirrored resource relations are created dynamically at sync time and are
not modelled here; see ingestion.store.

Usage:
    from models.sync_log import SyncLogEntry
    from models.resource_metadata import ResourceMetadata
    from models.base import Base, SyncStatus
"""

__all__ = [
    "Base",
    "SyncStatus",
    "SyncLogEntry",
    "ResourceMetadata",
]
