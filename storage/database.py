"""
Async PostgreSQL connection management.

Provides an asyncpg connection pool with the store's reconnect policy:
- At startup, connect with a bounded number of attempts at a fixed interval;
  if none succeeds, startup fails.
- After startup, a lost connection fails the current operation with
  StoreConnectionLost and starts a background task that reconnects
  indefinitely at the same fixed interval.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg
from pydantic import BaseModel, ConfigDict

from core.logging import get_logger
from storage.market_store import StoreConnectionLost

logger = get_logger(__name__)

# Errors meaning the connection is gone. Query timeouts stay out of this list;
# TimeoutError subclasses OSError on 3.11+, so OSError stays out too.
CONNECTION_ERRORS = (
    asyncpg.InterfaceError,
    asyncpg.ConnectionDoesNotExistError,
    asyncpg.ConnectionFailureError,
    ConnectionError,
)


class DatabaseConfig(BaseModel):
    """PostgreSQL database configuration."""

    model_config = ConfigDict(frozen=True)

    url: str
    min_connections: int = 1
    max_connections: int = 10
    command_timeout: float = 30.0

    # Reconnection settings
    reconnect_interval: float = 0.5
    startup_attempts: int = 10


class Database:
    """
    Async PostgreSQL connection manager.

    Usage:
        db = Database(DatabaseConfig(url="postgresql://..."))
        await db.initialize()

        row = await db.fetchrow("SELECT * FROM markets WHERE id = $1", "BTCUSDT")

        await db.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        """Check if pool is connected and ready."""
        return self._pool is not None

    @property
    def is_reconnecting(self) -> bool:
        """True while the background reconnect task is running."""
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def _create_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            self.config.url,
            min_size=self.config.min_connections,
            max_size=self.config.max_connections,
            command_timeout=self.config.command_timeout,
        )
        # Verify connection works
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return pool

    async def initialize(self) -> None:
        """
        Connect at startup.

        Raises:
            RuntimeError: If no attempt succeeds within config.startup_attempts
        """
        if self._pool is not None:
            return

        for attempt in range(1, self.config.startup_attempts + 1):
            try:
                self._pool = await self._create_pool()
                logger.info(
                    f"Database connected "
                    f"(min={self.config.min_connections}, max={self.config.max_connections})"
                )
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    f"Database connect attempt {attempt}/{self.config.startup_attempts} failed: {e}"
                )
                if attempt < self.config.startup_attempts:
                    await asyncio.sleep(self.config.reconnect_interval)

        raise RuntimeError(
            f"Database unreachable after {self.config.startup_attempts} attempts"
        )

    async def close(self) -> None:
        """Stop reconnecting and close the pool."""
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    # ============================================
    # Reconnect Policy
    # ============================================

    async def _drop_pool(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            try:
                await pool.close()
            except Exception as e:
                logger.debug(f"Error closing broken pool: {e}")

    def _schedule_reconnect(self) -> None:
        if self.is_reconnecting:
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_forever(), name="db_reconnect")

    async def _reconnect_forever(self) -> None:
        """Retry at a fixed interval until the database is back."""
        attempt = 0
        while self._pool is None:
            attempt += 1
            try:
                self._pool = await self._create_pool()
                logger.info(f"Database reconnected (attempt {attempt})")
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"Database reconnect attempt {attempt} failed: {e}")
                await asyncio.sleep(self.config.reconnect_interval)

    async def _connection_lost(self, error: Exception) -> None:
        logger.warning(f"Database disconnected: {error}")
        await self._drop_pool()
        self._schedule_reconnect()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Get a connection from the pool.

        Raises:
            StoreConnectionLost: If the pool is down or the connection breaks
        """
        if self._pool is None:
            self._schedule_reconnect()
            raise StoreConnectionLost("Database is not connected")

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except CONNECTION_ERRORS as e:
            await self._connection_lost(e)
            raise StoreConnectionLost(str(e)) from e

    # ============================================
    # Query Helpers
    # ============================================

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return status."""
        async with self.connection() as conn:
            return await conn.execute(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Fetch a single row."""
        async with self.connection() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        """Fetch a single value."""
        async with self.connection() as conn:
            return await conn.fetchval(query, *args)
