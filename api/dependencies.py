"""
FastAPI dependencies
"""

from core.database import engine
from ingestion.store import PostgresStore

_store = PostgresStore(engine)


async def get_store() -> PostgresStore:
    """Shared store over the process-wide engine"""
    return _store
