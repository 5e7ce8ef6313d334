"""
Pydantic schemas for the gateway's schema catalog
"""

import re
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from core.identifiers import RelationName, find_placeholder

# A `/list` path segment, e.g. `/api/items/list` or `/api/items/list/v2`
LIST_SEGMENT = re.compile(r"/list($|/)", re.IGNORECASE)


class EndpointOp(BaseModel):
    """One upstream operation (Endpoint Descriptor)"""
    path: str
    method: str = "POST"
    summary: str = ""
    is_list: bool = Field(False, alias="isList")
    accepts_body: bool = Field(False, alias="acceptsBody")

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def placeholder(self) -> Optional[str]:
        """Name of the single ``{placeholder}`` segment, if the path has one"""
        return find_placeholder(self.path)

    @property
    def is_paginated(self) -> bool:
        """List-shaped by the catalog flag or by a `/list` path segment"""
        return self.is_list or bool(LIST_SEGMENT.search(self.path))

    @property
    def relation(self) -> RelationName:
        return RelationName.for_path(self.path)


class CatalogResource(BaseModel):
    """Catalog entry grouping an operation under its resource"""
    resource: str
    op: EndpointOp

    class Config:
        frozen = True


class Catalog(BaseModel):
    """Compact catalog returned by the gateway's schema operation"""
    resources: List[CatalogResource] = Field(default_factory=list)
    enums: Dict[str, List[Any]] = Field(default_factory=dict)
    hints: Dict[str, Any] = Field(default_factory=dict)
    version: str = "unknown"

    @property
    def operations(self) -> List[EndpointOp]:
        return [entry.op for entry in self.resources]
