"""
Postgres pool for the subscription store.

SubscriptionStore talks to this small facade instead of asyncpg, so its
tests can swap in an AsyncMock with the same four query methods.
"""

import logging
from types import TracebackType
from typing import Any

import asyncpg

from clip_relay.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Owns one asyncpg pool for the lifetime of a CLI command.

    Usage:
        async with Database() as db:
            rows = await db.fetch("SELECT * FROM subscriptions WHERE active")
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()
        self._dsn = database_url or str(settings.database_url)
        self._pool_bounds = (
            min_size or settings.db_pool_min_size,
            max_size or settings.db_pool_max_size,
        )
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        low, high = self._pool_bounds
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn, min_size=low, max_size=high, command_timeout=30
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Could not open Postgres pool: %s", e)
            raise
        logger.info("Postgres pool open (%d-%d connections)", low, high)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Postgres pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status tag, e.g. ``UPDATE 1``."""
        return await self.pool.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self.pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self.pool.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self.pool.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the pool can answer ``SELECT 1``."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError, RuntimeError):
            return False
