"""
Best-effort schema introspection over stored payloads.

Relationships are GUESSED from key names (``customerId`` -> ``customers``).
The result feeds an analytics relationship map and is not an authoritative
schema; manual overrides always win over inference.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from core.config import settings
from core.identifiers import RelationName

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 25

# customerId, customerID, customer_id; not paid or valid
KEY_SUFFIX = re.compile(r"(?<=[a-z0-9])(?:Id|ID)$|(?i:_id)$")


class RelationshipInferrer(ABC):
    """Maps identifier-looking keys of a resource to related resource names."""

    @abstractmethod
    def is_key_field(self, key: str) -> bool:
        pass

    @abstractmethod
    def infer(self, resource: str, keys: Iterable[str]) -> Dict[str, str]:
        pass


class SuffixRelationshipInferrer(RelationshipInferrer):
    """
    Heuristic inference: strip the id suffix, lower-case, pluralize.

    The suffix is matched in any case at a word boundary (``customerId``,
    ``customerID``, ``customer_id``), so words that merely end in "id"
    are not keys.

    Overrides are ``{resource: {key: target}}`` and replace the guess for
    the listed keys of that resource.
    """

    pattern = KEY_SUFFIX

    def __init__(self, overrides: Optional[Dict[str, Dict[str, str]]] = None):
        self.overrides = overrides if overrides is not None else settings.RELATIONSHIP_OVERRIDES

    @staticmethod
    def is_primary_key(key: str) -> bool:
        return key.lower() == "id"

    def is_key_field(self, key: str) -> bool:
        return self.is_primary_key(key) or bool(self.pattern.search(key))

    def guess(self, key: str) -> Optional[str]:
        stem = self.pattern.sub("", key)
        if not stem:
            return None
        return stem.lower() + "s"

    def infer(self, resource: str, keys: Iterable[str]) -> Dict[str, str]:
        relationships = {}
        for key in keys:
            if self.is_primary_key(key) or not self.pattern.search(key):
                continue
            target = self.guess(key)
            if target:
                relationships[key] = target

        manual = self.overrides.get(str(resource), {})
        relationships.update(manual)
        return relationships


@dataclass
class ResourceProfile:
    resource: str
    keys: List[str] = field(default_factory=list)
    key_fields: List[str] = field(default_factory=list)
    relationships: Dict[str, str] = field(default_factory=dict)


class SchemaIntrospector:
    """Samples a relation and upserts its inferred metadata row."""

    def __init__(self, store, inferrer: Optional[RelationshipInferrer] = None, sample_size: int = SAMPLE_SIZE):
        self.store = store
        self.inferrer = inferrer or SuffixRelationshipInferrer()
        self.sample_size = sample_size

    async def analyze(self, resource: RelationName) -> ResourceProfile:
        payloads = await self.store.sample_payloads(resource, self.sample_size)

        keys: List[str] = []
        for payload in payloads:
            if not isinstance(payload, dict):
                continue
            for key in payload:
                if key not in keys:
                    keys.append(key)

        key_fields = [key for key in keys if self.inferrer.is_key_field(key)]
        relationships = self.inferrer.infer(resource, key_fields)

        await self.store.upsert_metadata(resource, key_fields, relationships)

        logger.debug(f"{resource}: {len(key_fields)} key fields, {len(relationships)} relationships")
        return ResourceProfile(
            resource=str(resource),
            keys=keys,
            key_fields=key_fields,
            relationships=relationships
        )
