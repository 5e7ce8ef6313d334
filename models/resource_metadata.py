from sqlalchemy import Column, Text, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from models.base import Base


class ResourceMetadata(Base):
    """
    Inferred shape of one mirrored relation.

    One row per relation, upserted after every sync (latest inference
    wins). Relationships are heuristic and meant for analytics only.
    """
    __tablename__ = "mirror_meta"

    table_name = Column(Text, primary_key=True)
    key_fields = Column(JSONB, nullable=True)
    relationships = Column(JSONB, nullable=True)
    last_discovered = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
