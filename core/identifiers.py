"""
Validated relation names.

Mirrored relations are named after endpoint paths and those names are
interpolated into DDL/DML text. Every name that reaches SQL is a
RelationName, built through a single sanitize rule.
"""

import hashlib
import re
from typing import Dict, Optional

from core.exceptions import InvalidIdentifierError

# PostgreSQL truncates identifiers beyond this length
MAX_IDENTIFIER_LENGTH = 63

INDEX_SUFFIX = "_id_idx"

RESERVED_RELATIONS = frozenset({"mirror_log", "mirror_meta"})

_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def sanitize(raw: str) -> str:
    """Map arbitrary text onto a lower-case, unquoted-safe SQL identifier."""
    name = _UNSAFE.sub("_", raw or "").lower()
    if name[:1].isdigit():
        name = "_" + name
    return name[:MAX_IDENTIFIER_LENGTH]


def find_placeholder(path: str) -> Optional[str]:
    """Return the name inside the first ``{...}`` segment of a path, if any."""
    match = _PLACEHOLDER.search(path or "")
    return match.group(1) if match else None


class RelationName(str):
    """
    A storage-safe relation identifier.

    Construction applies sanitize() once; names that come out empty (or
    made only of underscores) are rejected with InvalidIdentifierError.
    Sanitizing an already valid name is a no-op, so RelationName(name)
    is idempotent.
    """

    def __new__(cls, raw: str):
        name = sanitize(raw)
        if not name.strip("_"):
            raise InvalidIdentifierError(
                f"Cannot derive a relation name from {raw!r}",
                context={"raw": raw}
            )
        return super().__new__(cls, name)

    @classmethod
    def for_path(cls, path: str) -> "RelationName":
        """
        Derive the relation for an endpoint path.

        Placeholder and literal ``api`` segments are dropped and the rest is
        joined with underscores: ``/api/items/{itemId}/routing`` becomes
        ``items_routing``.
        """
        segments = [
            segment for segment in (path or "").split("/")
            if segment and not segment.startswith("{") and segment != "api"
        ]
        return cls("_".join(segments))

    @classmethod
    def for_parent(cls, placeholder: str) -> "RelationName":
        """``itemId`` -> ``items``"""
        stem = re.sub(r"Id$", "", placeholder or "")
        return cls(stem.lower() + "s")

    @property
    def index_name(self) -> str:
        """
        Name of the id index.

        Names too long for the suffix keep a prefix and a digest of the full
        relation name, so long relations sharing a prefix stay distinct.
        """
        if len(self) + len(INDEX_SUFFIX) <= MAX_IDENTIFIER_LENGTH:
            return f"{self}{INDEX_SUFFIX}"
        digest = hashlib.md5(self.encode("utf-8")).hexdigest()[:8]
        keep = MAX_IDENTIFIER_LENGTH - len(INDEX_SUFFIX) - len(digest) - 1
        return f"{self[:keep]}_{digest}{INDEX_SUFFIX}"


class RelationRegistry:
    """
    Tracks which endpoint claimed which relation during a run.

    Two different paths that sanitize to the same relation would silently
    interleave their payloads, so the second claim is rejected. Relations
    and their id indexes share one namespace, so a claim whose relation or
    index name is already taken by another relation is rejected too.
    """

    def __init__(self, reserved=RESERVED_RELATIONS):
        self._reserved = frozenset(reserved)
        self._claims: Dict[str, str] = {}
        # index name -> relation it belongs to
        self._indexes: Dict[str, str] = {}

    def claim(self, name: RelationName, source: str) -> RelationName:
        if name in self._reserved:
            raise InvalidIdentifierError(
                f"Relation {name} is reserved by the mirror engine",
                context={"relation": str(name), "source": source}
            )

        owner = self._claims.get(name, source)
        if owner != source:
            raise InvalidIdentifierError(
                f"Relation {name} for {source} collides with {owner}",
                context={"relation": str(name), "source": source, "claimed_by": owner}
            )

        index = name.index_name
        holder = self._indexes.get(index, name)
        if holder != name or index in self._claims:
            raise InvalidIdentifierError(
                f"Index {index} for {source} collides with relation {holder if holder != name else index}",
                context={"relation": str(name), "source": source, "index": index}
            )
        if name in self._indexes:
            raise InvalidIdentifierError(
                f"Relation {name} for {source} collides with the index of {self._indexes[name]}",
                context={"relation": str(name), "source": source, "index_of": self._indexes[name]}
            )

        self._claims[name] = source
        self._indexes[index] = name
        return name

    def __contains__(self, name: str) -> bool:
        return name in self._claims
