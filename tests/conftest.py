"""
Pytest configuration and fixtures
"""

import pytest
from typing import Any, Dict, List, Optional

from core.exceptions import DatabaseError, GatewayError
from core.identifiers import RelationName
from schemas.catalog import Catalog


class FakeStore:
    """In-memory stand-in for PostgresStore with the same primitives"""

    def __init__(self):
        self.relations: Dict[str, List[Any]] = {}
        self.projections = set()
        self.indexes = set()
        self.metadata: Dict[str, Dict[str, Any]] = {}
        self.sync_log: List[Dict[str, Any]] = []
        self.system_tables = False
        self.append_calls: List[int] = []
        self.healthy = True

    async def ping(self):
        if not self.healthy:
            raise DatabaseError("database unreachable")

    async def ensure_system_tables(self):
        self.system_tables = True

    async def relation_exists(self, name) -> bool:
        return str(name) in self.relations

    async def ensure_relation(self, name):
        self.relations.setdefault(str(name), [])

    async def append(self, name, payloads) -> int:
        if str(name) not in self.relations:
            raise DatabaseError(f"relation {name} does not exist")
        self.append_calls.append(len(payloads))
        self.relations[str(name)].extend(payloads)
        return len(payloads)

    async def ensure_projections(self, name):
        if str(name) not in self.relations:
            raise DatabaseError(f"relation {name} does not exist")
        self.projections.add(str(name))
        self.indexes.add(RelationName(name).index_name)

    async def select_ids(self, name, offset: int, limit: int) -> List[Any]:
        payloads = self.relations[str(name)]
        ids = sorted(
            str(payload["id"]) for payload in payloads
            if isinstance(payload, dict) and payload.get("id") is not None
        )
        nulls = len(payloads) - len(ids)
        return (ids + [None] * nulls)[offset:offset + limit]

    async def sample_payloads(self, name, limit: int = 25) -> List[Any]:
        return self.relations[str(name)][:limit]

    async def upsert_metadata(self, name, key_fields, relationships):
        self.metadata[str(name)] = {
            "key_fields": list(key_fields),
            "relationships": dict(relationships),
        }

    async def append_sync_log(self, entry: Dict[str, Any]):
        self.sync_log.append(dict(entry))

    async def latest_watermark(self, resource: str):
        entries = [
            entry for entry in self.sync_log
            if entry["resource"] == resource and entry.get("watermark") is not None
        ]
        if not entries:
            return None
        return max(entries, key=lambda entry: entry["synced_at"])["watermark"]

    async def recent_sync_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        ordered = sorted(self.sync_log, key=lambda entry: entry["synced_at"], reverse=True)
        return [
            {
                "resource": entry["resource"],
                "rowcount": entry["rowcount"],
                "synced_at": entry["synced_at"],
                "fingerprint": entry.get("fingerprint"),
                "watermark": entry.get("watermark"),
                "errors": entry.get("errors") or [],
            }
            for entry in ordered[:limit]
        ]

    async def sync_summary(self) -> List[Dict[str, Any]]:
        latest = {}
        for entry in self.sync_log:
            current = latest.get(entry["resource"])
            if current is None or entry["synced_at"] >= current["synced_at"]:
                latest[entry["resource"]] = entry
        return [
            {
                "resource": entry["resource"],
                "rowcount": entry["rowcount"],
                "synced_at": entry["synced_at"],
                "errors": entry.get("errors") or [],
            }
            for _, entry in sorted(latest.items())
        ]


def paged(records: List[Any]):
    """Gateway handler serving records by skip/take"""
    def handler(query, body):
        skip = int(query.get("skip", 0))
        take = int(query.get("take", len(records) or 1))
        return records[skip:skip + take]
    return handler


class FakeGateway:
    """
    Scripted gateway.

    routes maps a concrete path to a value, an exception instance, or a
    callable ``(query, body) -> value``.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None, catalog: Any = None):
        self.routes = routes or {}
        self.catalog = catalog
        self.calls: List[Dict[str, Any]] = []
        self.schema_calls = 0
        self.base_url = "http://gateway.test"

    async def call(self, path, method="POST", query=None, headers=None, body=None, auto_page=None):
        self.calls.append({"path": path, "method": method, "query": query or {}, "body": body})
        handler = self.routes.get(path)
        if handler is None:
            raise GatewayError(f"404: no route for {path}", context={"status_code": 404})
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(query or {}, body)
        return handler

    def calls_for(self, path: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["path"] == path]

    async def schema(self) -> Catalog:
        self.schema_calls += 1
        if isinstance(self.catalog, Exception):
            raise self.catalog
        return Catalog.model_validate(self.catalog or {})


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def mock_catalog():
    """Catalog as served by the gateway's schema operation"""
    return {
        "version": "1.0",
        "enums": {"JobStatus": ["open", "closed"]},
        "hints": {"items": {"list": "/api/items/list/v2"}},
        "resources": [
            {"resource": "customers", "op": {"path": "/api/customers/list", "method": "POST", "isList": True, "acceptsBody": True}},
            {"resource": "items", "op": {"path": "/api/items/list", "method": "POST", "isList": True, "acceptsBody": True}},
            {"resource": "jobs", "op": {"path": "/api/jobs/list", "method": "POST", "isList": True, "acceptsBody": True}},
            {"resource": "jobs", "op": {"path": "/api/jobs/list", "method": "GET", "isList": True, "acceptsBody": False}},
            {"resource": "jobs", "op": {"path": "/api/jobs/{jobId}", "method": "GET", "isList": False, "acceptsBody": False}},
            {"resource": "health", "op": {"path": "/healthz", "method": "GET"}},
        ],
    }


@pytest.fixture
def mock_items():
    """Mirrored item payloads"""
    return [
        {"id": "item_001", "name": "Bracket", "vendorId": "v_1", "createdUtc": "2024-01-15T10:00:00Z"},
        {"id": "item_002", "name": "Plate", "vendorId": "v_2", "categoryId": "c_1", "createdUtc": "2024-01-15T11:00:00Z"},
        {"id": "item_003", "name": "Bolt", "createdUtc": "2024-01-15T12:00:00Z"},
    ]


@pytest.fixture
def make_gateway():
    """Factory for scripted gateways"""
    return FakeGateway


@pytest.fixture
def paged_route():
    """Factory for skip/take-aware gateway routes"""
    return paged
