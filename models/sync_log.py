from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from models.base import Base


class SyncLogEntry(Base):
    """
    Append-only history of resource synchronizations.

    Purpose:
    - Incremental resumption (last_date is the watermark for the next run)
    - Audit trail and reporting
    - Drift detection through the row-count fingerprint

    Design:
    - One row per resource per run, never updated
    - The current watermark is the newest row with a non-null last_date;
      failed runs store NULL so they never advance the lower bound
    """
    __tablename__ = "mirror_log"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    resource = Column(Text, nullable=False)
    rowcount = Column(Integer, nullable=False, default=0)
    synced_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    hash = Column(String(64), nullable=True)  # Row-count fingerprint
    last_date = Column(DateTime(timezone=True), nullable=True)  # Watermark
    errors = Column(JSONB, nullable=True)

    __table_args__ = (
        Index("idx_mirror_log_resource_synced", "resource", "synced_at"),
    )
