"""PostgreSQL implementation backed by an asyncpg pool with pgvector codecs."""

import time
from collections.abc import Sequence
from typing import Any

import asyncpg
from pgvector.asyncpg import register_vector

from waffle_intel.commons.infrastructure.blob.base import HealthStatus
from waffle_intel.commons.infrastructure.relationaldb.base import (
    Record,
    RelationalDBBase,
)
from waffle_intel.commons.telemetry import get_logger

logger = get_logger(__name__)


class PostgresDatabase(RelationalDBBase):
    """Bounded asyncpg pool. Every connection gets the ``vector`` codec."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ) -> None:
        """Initialize without connecting.

        Args:
            dsn: PostgreSQL connection string.
            min_size: Connections kept open.
            max_size: Upper bound on concurrent connections.
            command_timeout: Per-statement timeout in seconds.
        """
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection) -> None:
        await register_vector(conn)

    async def connect(self) -> None:
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            dsn=self._dsn,
            min_size=self._min_size,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
            init=self._init_connection,
        )
        logger.info(
            "Database pool initialized",
            extra={"min_size": self._min_size, "max_size": self._max_size},
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.connect()
        assert self._pool is not None
        return self._pool

    async def fetch(self, query: str, *args: Any) -> Sequence[Record]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            return list(await conn.fetch(query, *args))

    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row: Record | None = await conn.fetchrow(query, *args)
            return row

    async def fetchval(self, query: str, *args: Any) -> Any:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            status: str = await conn.execute(query, *args)
            return status

    async def health_check(self) -> HealthStatus:
        start = time.perf_counter()
        try:
            await self.fetchval("SELECT 1")
        except Exception as e:
            return HealthStatus(
                healthy=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                message=f"Database health check failed: {e}",
            )
        return HealthStatus(
            healthy=True,
            latency_ms=(time.perf_counter() - start) * 1000,
            message="Database is healthy",
        )
