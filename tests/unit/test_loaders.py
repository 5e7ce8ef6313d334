"""
Unit tests for the PostgreSQL loader
"""

import pytest
from unittest.mock import AsyncMock
from core.exceptions import DatabaseError, LoadError
from core.identifiers import RelationName
from ingestion.loaders.postgres_loader import PostgresLoader


class TestPostgresLoader:
    """Test batch writes and post-write projections"""

    @pytest.mark.asyncio
    async def test_save_creates_relation_and_index(self, fake_store, mock_items):
        loader = PostgresLoader(fake_store, batch_size=1000, insert_concurrency=4)

        written = await loader.save(RelationName("items_list"), mock_items)

        assert written == 3
        assert fake_store.relations["items_list"] == mock_items
        assert "items_list" in fake_store.projections
        assert "items_list_id_idx" in fake_store.indexes

    @pytest.mark.asyncio
    async def test_second_save_appends(self, fake_store, mock_items):
        loader = PostgresLoader(fake_store)

        await loader.save(RelationName("items_list"), mock_items[:2])
        await loader.save(RelationName("items_list"), mock_items[2:])

        ids = [row["id"] for row in fake_store.relations["items_list"]]
        assert ids == ["item_001", "item_002", "item_003"]

    @pytest.mark.asyncio
    async def test_empty_save_still_prepares_relation(self, fake_store):
        written = await PostgresLoader(fake_store).save(RelationName("jobs_list"), [])

        assert written == 0
        assert fake_store.relations["jobs_list"] == []
        assert "jobs_list" in fake_store.projections
        assert fake_store.append_calls == []

    @pytest.mark.asyncio
    async def test_batches_split_across_connections(self, fake_store):
        records = [{"id": str(i)} for i in range(2500)]
        loader = PostgresLoader(fake_store, batch_size=1000, insert_concurrency=4)

        written = await loader.save(RelationName("items_list"), records)

        assert written == 2500
        # batches of 1000, 1000, 500 each split into up to 4 chunks
        assert fake_store.append_calls == [250, 250, 250, 250, 250, 250, 250, 250, 125, 125, 125, 125]
        assert len(fake_store.relations["items_list"]) == 2500

    @pytest.mark.asyncio
    async def test_store_failure_raises_load_error(self, fake_store, mock_items):
        fake_store.append = AsyncMock(side_effect=DatabaseError("disk full"))

        with pytest.raises(LoadError) as exc_info:
            await PostgresLoader(fake_store).save(RelationName("items_list"), mock_items)

        assert exc_info.value.context["table_name"] == "items_list"
        assert exc_info.value.context["records_written"] == 0
        assert "items_list" not in fake_store.projections
