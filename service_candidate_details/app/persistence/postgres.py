"""
PostgreSQL store engine for cached candidate details.
"""

import asyncio
import json
from typing import Dict, Iterable, Optional

import asyncpg

from shared.errors import StoreReadError, StoreWriteError
from shared.logging import get_logger

from ..models import CacheRecord
from .base import CandidateDetailStore

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

UPSERT_SQL = """
    INSERT INTO candidate_details (owner_id, project_id, candidate_id, payload, written_at)
    VALUES ($1, $2, $3, $4, $5)
    ON CONFLICT (owner_id, project_id, candidate_id) DO UPDATE SET
        payload = EXCLUDED.payload,
        written_at = EXCLUDED.written_at
"""

SELECT_SQL = """
    SELECT candidate_id, payload, written_at
    FROM candidate_details
    WHERE owner_id = $1 AND project_id = $2 AND candidate_id = ANY($3::bigint[])
"""


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class PostgresCandidateDetailStore(CandidateDetailStore):
    """asyncpg-backed store; the primary key enforces one record per triple."""

    def __init__(self, dsn: str, *, min_size: int = 2, max_size: int = 10,
                 command_timeout: float = 30.0):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("candidate_details.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self) -> None:
        """Open the pool and make sure the table exists."""
        self.pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            init=_init_connection,
        )
        await self._create_tables()
        self.logger.info("PostgreSQL store started")

    async def stop(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL store stopped")

    async def _create_tables(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS candidate_details (
                    owner_id VARCHAR(255) NOT NULL,
                    project_id VARCHAR(255) NOT NULL,
                    candidate_id BIGINT NOT NULL,
                    payload JSONB NOT NULL,
                    written_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (owner_id, project_id, candidate_id)
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_candidate_details_written_at
                ON candidate_details(written_at);
            """)

    async def get_many(self, owner_id: str, project_id: str,
                       candidate_ids: Iterable[int]) -> Dict[int, CacheRecord]:
        ids = list(candidate_ids)
        if self.pool is None:
            raise StoreReadError("Store is not started")

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(SELECT_SQL, owner_id, project_id, ids)
        except _STORE_ERRORS as e:
            self.logger.error(
                "Error reading candidate details",
                owner_id=owner_id,
                project_id=project_id,
                error=str(e)
            )
            raise StoreReadError(details={"error": str(e)}) from e

        return {
            row["candidate_id"]: CacheRecord(
                owner_id=owner_id,
                project_id=project_id,
                candidate_id=row["candidate_id"],
                payload=row["payload"],
                written_at=row["written_at"],
            )
            for row in rows
        }

    async def upsert(self, record: CacheRecord) -> None:
        if self.pool is None:
            raise StoreWriteError("Store is not started", details={"candidate_id": record.candidate_id})

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    UPSERT_SQL,
                    record.owner_id,
                    record.project_id,
                    record.candidate_id,
                    record.payload,
                    record.written_at,
                )
        except _STORE_ERRORS as e:
            raise StoreWriteError(
                details={"candidate_id": record.candidate_id, "error": str(e)}
            ) from e

    async def ping(self) -> bool:
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except _STORE_ERRORS as e:
            self.logger.warning("PostgreSQL ping failed", error=str(e))
            return False
        return True
