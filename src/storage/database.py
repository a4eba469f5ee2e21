"""
asyncpg pool shared by the bin, reading, alert, notification, user and
collection-log repositories.

Every pooled connection is pinned to UTC so ``TIMESTAMPTZ`` columns
(``last_emptied``, ``resolved_at``, ``sent_at``) round-trip as aware
UTC datetimes regardless of the server's default zone.
"""

import logging
from typing import Any

import asyncpg

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

APPLICATION_NAME = "bin-monitor"


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.execute("SET TIME ZONE 'UTC'")


class Database:
    """
    Connection pool for the bin-monitor tables.

    Repositories only ever run single statements, so the wrapper exposes
    the four asyncpg query shapes and nothing else.

    Usage:
        db = Database()
        await db.connect()
        bin_row = await db.fetchrow("SELECT * FROM bins WHERE bin_code = $1", "BIN-001")
        await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout or settings.db_command_timeout

        self._pool: asyncpg.Pool | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create the pool. A second call is a no-op."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                init=_init_connection,
                server_settings={"application_name": APPLICATION_NAME},
            )
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            raise
        logger.info("Database connected (pool: %d-%d)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def execute(self, query: str, *args: Any) -> str:
        """
        Run a statement without returning rows.

        Returns:
            asyncpg status tag, e.g. ``"UPDATE 2"`` (parsed by the alert
            repository to count resolved rows)
        """
        return await self.pool.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self.pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self.pool.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self.pool.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when the pool can run ``SELECT 1``; never raises."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return False
