"""
Unit tests for candidate detail store engines.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from shared.errors import StoreReadError, StoreWriteError
from shared.test_helpers import EPOCH

from service_candidate_details.app.persistence import (
    InMemoryCandidateDetailStore,
    PostgresCandidateDetailStore,
)
from service_candidate_details.app.persistence.postgres import SELECT_SQL, UPSERT_SQL
from service_candidate_details.tests.doubles import create_cache_record


class TestInMemoryStore:
    """Test cases for InMemoryCandidateDetailStore."""

    @pytest.fixture
    def store(self):
        return InMemoryCandidateDetailStore()

    @pytest.mark.asyncio
    async def test_get_many_returns_only_existing(self, store):
        await store.upsert(create_cache_record(1))

        records = await store.get_many("user-1", "p1", [1, 2])

        assert list(records) == [1]
        assert records[1].payload["id"] == 1

    @pytest.mark.asyncio
    async def test_upsert_replaces_whole_record(self, store):
        await store.upsert(create_cache_record(1, payload={"id": 1, "name": "old", "role": "x"}))
        later = EPOCH.replace(hour=13)
        await store.upsert(create_cache_record(1, payload={"id": 1, "name": "new"}, written_at=later))

        record = (await store.get_many("user-1", "p1", [1]))[1]

        assert record.payload == {"id": 1, "name": "new"}
        assert record.written_at == later
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_reads_scoped_to_owner_and_project(self, store):
        await store.upsert(create_cache_record(1, owner_id="user-1", project_id="p1"))

        assert await store.get_many("user-2", "p1", [1]) == {}
        assert await store.get_many("user-1", "p2", [1]) == {}

    @pytest.mark.asyncio
    async def test_stored_payload_is_isolated(self, store):
        payload = {"id": 1, "skills": ["Python"]}
        await store.upsert(create_cache_record(1, payload=payload))
        payload["skills"].append("Go")

        returned = (await store.get_many("user-1", "p1", [1]))[1]
        returned.payload["skills"].append("Rust")
        returned.payload["name"] = "mutated"

        record = (await store.get_many("user-1", "p1", [1]))[1]

        assert record.payload == {"id": 1, "skills": ["Python"]}

    @pytest.mark.asyncio
    async def test_lifecycle_and_ping(self, store):
        await store.start()
        assert await store.ping() is True
        await store.stop()


class TestPostgresStore:
    """Test cases for PostgresCandidateDetailStore."""

    @pytest.fixture
    def conn(self):
        conn = MagicMock()
        conn.fetch = AsyncMock(return_value=[])
        conn.execute = AsyncMock()
        conn.fetchval = AsyncMock(return_value=1)
        return conn

    @pytest.fixture
    def pool(self, conn):
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        pool.close = AsyncMock()
        return pool

    @pytest.fixture
    def store(self, pool):
        store = PostgresCandidateDetailStore("postgres://test/db")
        store.pool = pool
        return store

    @pytest.mark.asyncio
    async def test_start_creates_pool_and_tables(self, pool, conn):
        store = PostgresCandidateDetailStore("postgres://test/db", min_size=1, max_size=4)

        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            await store.start()

        assert store.pool is pool
        assert create_pool.await_args.kwargs["min_size"] == 1
        assert create_pool.await_args.kwargs["max_size"] == 4
        statements = " ".join(call.args[0] for call in conn.execute.await_args_list)
        assert "CREATE TABLE IF NOT EXISTS candidate_details" in statements
        assert "PRIMARY KEY (owner_id, project_id, candidate_id)" in statements

    @pytest.mark.asyncio
    async def test_get_many_maps_rows(self, store, conn):
        conn.fetch.return_value = [
            {"candidate_id": 2, "payload": {"id": 2}, "written_at": EPOCH},
        ]

        records = await store.get_many("user-1", "p1", (1, 2))

        conn.fetch.assert_awaited_once_with(SELECT_SQL, "user-1", "p1", [1, 2])
        assert list(records) == [2]
        assert records[2].owner_id == "user-1"
        assert records[2].project_id == "p1"
        assert records[2].payload == {"id": 2}
        assert records[2].written_at == EPOCH

    @pytest.mark.asyncio
    async def test_get_many_failure_raises_read_error(self, store, conn):
        conn.fetch.side_effect = asyncpg.PostgresError("relation does not exist")

        with pytest.raises(StoreReadError):
            await store.get_many("user-1", "p1", [1])

    @pytest.mark.asyncio
    async def test_get_many_connection_failure_raises_read_error(self, store, pool):
        pool.acquire.return_value.__aenter__.side_effect = OSError("connection refused")

        with pytest.raises(StoreReadError):
            await store.get_many("user-1", "p1", [1])

    @pytest.mark.asyncio
    async def test_upsert_uses_conflict_update(self, store, conn):
        record = create_cache_record(3)

        await store.upsert(record)

        conn.execute.assert_awaited_once_with(
            UPSERT_SQL, "user-1", "p1", 3, record.payload, record.written_at
        )
        assert "ON CONFLICT (owner_id, project_id, candidate_id) DO UPDATE" in UPSERT_SQL

    @pytest.mark.asyncio
    async def test_upsert_failure_raises_write_error(self, store, conn):
        conn.execute.side_effect = asyncpg.PostgresError("disk full")

        with pytest.raises(StoreWriteError) as exc_info:
            await store.upsert(create_cache_record(3))

        assert exc_info.value.details["candidate_id"] == 3

    @pytest.mark.asyncio
    async def test_not_started(self):
        store = PostgresCandidateDetailStore("postgres://test/db")

        with pytest.raises(StoreReadError):
            await store.get_many("user-1", "p1", [1])
        with pytest.raises(StoreWriteError):
            await store.upsert(create_cache_record(1))
        assert await store.ping() is False

    @pytest.mark.asyncio
    async def test_ping_and_stop(self, store, pool):
        assert await store.ping() is True

        await store.stop()

        pool.close.assert_awaited_once()
        assert store.pool is None
