"""
Database engine management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str = None) -> AsyncEngine:
    """
    Create the shared async engine.

    The pool is shared by every concurrent sync; each statement borrows
    and returns its own connection.
    """
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=False,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
        future=True
    )


# Process-wide engine for the API
engine = build_engine()
