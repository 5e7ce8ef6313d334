"""
API endpoint tests
"""

import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from api.main import app
from api.dependencies import get_store


@pytest.fixture
def client(fake_store):
    """Create test client with store override"""

    async def override_get_store():
        return fake_store

    app.dependency_overrides[get_store] = override_get_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def log_entry(resource, rowcount, hour, errors=None):
    synced_at = datetime(2024, 1, 15, hour, tzinfo=timezone.utc)
    return {
        "resource": resource,
        "rowcount": rowcount,
        "synced_at": synced_at,
        "fingerprint": "f" * 32,
        "watermark": None if errors else synced_at,
        "errors": errors or [],
    }


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/health"
    assert response.headers["X-Request-ID"].startswith("req_")
    assert "X-API-Latency-ms" in response.headers


def test_request_id_propagated(client):
    response = client.get("/", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"


def test_health_endpoint_healthy(client, fake_store):
    fake_store.sync_log.append(log_entry("items_list", 3, 10))

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["total_resources"] == 1


def test_health_endpoint_degraded(client, fake_store):
    fake_store.sync_log.append(log_entry("items_list", 3, 10))
    fake_store.sync_log.append(log_entry("jobs_list", 0, 11, errors=["502 from gateway"]))

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["failed_resources"] == 1


def test_health_endpoint_database_down(client, fake_store):
    fake_store.healthy = False

    data = client.get("/health").json()

    assert data["status"] == "unhealthy"
    assert data["database_connected"] is False
    assert data["resources"] == []


def test_summary_latest_per_resource(client, fake_store):
    fake_store.sync_log.append(log_entry("items_list", 3, 10))
    fake_store.sync_log.append(log_entry("items_list", 5, 12))
    fake_store.sync_log.append(log_entry("jobs_list", 1, 11))

    response = client.get("/mirror/summary")

    assert response.status_code == 200
    assert [(row["resource"], row["rowcount"]) for row in response.json()] == [
        ("items_list", 5),
        ("jobs_list", 1),
    ]


def test_logs_newest_first(client, fake_store):
    for hour in (9, 10, 11):
        fake_store.sync_log.append(log_entry("items_list", hour, hour))

    response = client.get("/mirror/logs", params={"limit": 2})

    assert response.status_code == 200
    assert [row["rowcount"] for row in response.json()] == [11, 10]


def test_logs_limit_validated(client):
    assert client.get("/mirror/logs", params={"limit": 0}).status_code == 422
    assert client.get("/mirror/logs", params={"limit": 501}).status_code == 422


def test_resource_rows(client, fake_store, mock_items):
    fake_store.relations["items_list"] = list(mock_items)

    response = client.get("/mirror/items_list", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["resource"] == "items_list"
    assert data["count"] == 2
    assert data["rows"][0]["id"] == "item_001"


def test_resource_not_found(client):
    response = client.get("/mirror/unknown_table")

    assert response.status_code == 404
    assert response.json()["detail"] == "Table unknown_table not found"


def test_engine_relations_not_exposed(client, fake_store):
    fake_store.relations["mirror_meta"] = [{"table_name": "items_list"}]

    assert client.get("/mirror/mirror_meta").status_code == 404
