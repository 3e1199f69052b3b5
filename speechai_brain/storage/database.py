"""
asyncpg pool for the PostgreSQL document store.

The pool is created once at startup (``init_database``) and shared through
``get_db_pool``. Driver and socket failures surface as storage errors so the
API can answer them with a status code.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg

from .config import DatabaseConfig, db_settings
from .exceptions import DatabaseOperationError, DatabaseUnavailableError

logger = logging.getLogger("speechai.storage.database")


class DatabasePool:
    """Owns the asyncpg pool and wraps its query methods."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or db_settings
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self) -> None:
        """Open the pool. No-op when already open or when the backend is not postgres."""
        if self._pool is not None:
            return
        if not self.config.enabled:
            logger.info("PostgreSQL backend disabled (backend=%s)", self.config.backend)
            return

        logger.info("Connecting to PostgreSQL at %s", self.config.display_target)
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.dsn,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                timeout=self.config.connect_timeout,
                command_timeout=self.config.command_timeout,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Could not open database pool: %s", e)
            raise DatabaseUnavailableError("connect") from e
        logger.info(
            "Database pool ready (min=%d, max=%d)",
            self.config.min_pool_size,
            self.config.max_pool_size,
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    def _require(self, operation: str) -> asyncpg.Pool:
        if self._pool is None:
            raise DatabaseUnavailableError(operation)
        return self._pool

    async def _run(self, operation: str, query: str, *args) -> Any:
        pool = self._require(operation)
        try:
            return await getattr(pool, operation)(query, *args)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Database %s failed: %s", operation, e)
            raise DatabaseOperationError(operation, e) from e

    async def execute(self, query: str, *args) -> str:
        """Run a statement; returns the status tag (e.g. ``UPDATE 1``)."""
        return await self._run("execute", query, *args)

    async def fetch(self, query: str, *args) -> list:
        return await self._run("fetch", query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        return await self._run("fetchval", query, *args)

    async def ping(self) -> bool:
        """True when a trivial query succeeds."""
        if self._pool is None:
            return False
        try:
            return await self._pool.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Database ping failed: %s", e)
            return False

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Connection with an open transaction; rolled back if the block raises."""
        pool = self._require("transaction")
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn


_db_pool: Optional[DatabasePool] = None


def get_db_pool() -> DatabasePool:
    """Get the process-wide pool (created lazily, opened by ``init_database``)."""
    global _db_pool
    if _db_pool is None:
        _db_pool = DatabasePool()
    return _db_pool


async def init_database() -> None:
    """Open the pool and bring the schema up to date."""
    from .migrations import run_migrations

    pool = get_db_pool()
    await pool.initialize()
    if pool.is_initialized:
        await run_migrations(pool)


async def close_database() -> None:
    await get_db_pool().close()
