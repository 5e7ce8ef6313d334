"""
Unit tests for PostgreSQL storage primitives
"""

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, MagicMock
from core.exceptions import DatabaseError, InvalidIdentifierError
from core.identifiers import RelationName
from ingestion.store import PostgresStore


@pytest.fixture
def connection():
    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=MagicMock())
    return conn


@pytest.fixture
def store(connection):
    engine = MagicMock()
    engine.begin.return_value.__aenter__.return_value = connection
    return PostgresStore(engine)


def executed_sql(connection, call_index=-1) -> str:
    return str(connection.execute.call_args_list[call_index][0][0])


class TestMirroredRelations:
    """Test DDL/DML issued for mirrored relations"""

    @pytest.mark.asyncio
    async def test_ensure_relation(self, store, connection):
        await store.ensure_relation(RelationName("items_list"))

        assert executed_sql(connection) == "CREATE TABLE IF NOT EXISTS items_list (payload JSONB)"

    @pytest.mark.asyncio
    async def test_append_is_one_executemany(self, store, connection):
        payloads = [{"id": "1", "createdUtc": datetime(2024, 1, 1, tzinfo=timezone.utc)}, {"id": "2"}]

        written = await store.append(RelationName("items_list"), payloads)

        assert written == 2
        assert connection.execute.await_count == 1
        assert "INSERT INTO items_list (payload)" in executed_sql(connection)
        params = connection.execute.call_args[0][1]
        assert len(params) == 2
        assert json.loads(params[0]["payload"])["createdUtc"].startswith("2024-01-01")

    @pytest.mark.asyncio
    async def test_append_nothing(self, store, connection):
        assert await store.append(RelationName("items_list"), []) == 0
        connection.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ensure_projections(self, store, connection):
        await store.ensure_projections(RelationName("items_list"))

        alter = executed_sql(connection, 0)
        assert "ADD COLUMN IF NOT EXISTS id TEXT GENERATED ALWAYS AS (payload->>'id') STORED" in alter
        assert "createdutc" in alter
        assert executed_sql(connection, 1) == "CREATE INDEX IF NOT EXISTS items_list_id_idx ON items_list (id)"

    @pytest.mark.asyncio
    async def test_unsafe_name_sanitized_before_interpolation(self, store, connection):
        await store.ensure_relation("items; DROP TABLE mirror_log")

        assert executed_sql(connection) == "CREATE TABLE IF NOT EXISTS items__drop_table_mirror_log (payload JSONB)"

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, store, connection):
        with pytest.raises(InvalidIdentifierError):
            await store.ensure_relation("{}")
        connection.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_select_ids(self, store, connection):
        connection.execute.return_value = [SimpleNamespace(id="a"), SimpleNamespace(id="b")]

        ids = await store.select_ids(RelationName("items"), 10000, 10000)

        assert ids == ["a", "b"]
        assert "ORDER BY payload->>'id' OFFSET :offset LIMIT :limit" in executed_sql(connection)
        assert connection.execute.call_args[0][1] == {"offset": 10000, "limit": 10000}

    @pytest.mark.asyncio
    async def test_relation_exists(self, store, connection):
        connection.execute.return_value = MagicMock(scalar=MagicMock(return_value=True))

        assert await store.relation_exists(RelationName("items")) is True
        assert connection.execute.call_args[0][1] == {"name": "items"}


class TestSyncLogQueries:

    @pytest.mark.asyncio
    async def test_latest_watermark(self, store, connection):
        watermark = datetime(2024, 1, 15, tzinfo=timezone.utc)
        connection.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=watermark))

        assert await store.latest_watermark("items_list") == watermark

    @pytest.mark.asyncio
    async def test_append_sync_log(self, store, connection):
        await store.append_sync_log({
            "resource": "items_list",
            "rowcount": 3,
            "synced_at": datetime.now(timezone.utc),
            "fingerprint": "abc",
            "watermark": None,
            "errors": [],
        })

        assert "INSERT INTO mirror_log" in executed_sql(connection)


class TestFailures:

    @pytest.mark.asyncio
    async def test_statement_failure_wrapped(self, store, connection):
        connection.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(DatabaseError) as exc_info:
            await store.append(RelationName("items_list"), [{"id": "1"}])

        assert exc_info.value.context["operation"] == "INSERT"
        assert exc_info.value.context["table_name"] == "items_list"
        assert isinstance(exc_info.value.original_exception, RuntimeError)

    @pytest.mark.asyncio
    async def test_ping_failure(self, store, connection):
        connection.execute.side_effect = OSError("refused")

        with pytest.raises(DatabaseError):
            await store.ping()
