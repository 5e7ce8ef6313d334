"""
Core utilities and configuration for the API mirror.

This package provides foundational components used throughout the sync engine:

Modules:
    config: Application configuration and environment variable management
    database: Async engine management
    exceptions: Custom exception hierarchy for error handling
    identifiers: Validated relation names for interpolated SQL
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import build_engine
    from core.exceptions import GatewayError, AuthenticationError
    from core.identifiers import RelationName
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Derive a storage-safe relation name
    name = RelationName.for_path("/api/items/list")  # "items_list"
"""

__all__ = [
    "settings",
    "build_engine",
    "setup_logging",
    "RelationName",
    "RelationRegistry",
    # Exceptions
    "MirrorException",
    "RetryableError",
    "NonRetryableError",
    "GatewayError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "PaginationError",
    "SchemaDiscoveryError",
    "SyncError",
    "ParentRelationMissingError",
    "LoadError",
    "DatabaseError",
    "InvalidIdentifierError",
]
