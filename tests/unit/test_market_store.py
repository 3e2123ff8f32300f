"""
Unit Tests for Market Storage

These tests verify:
- InMemoryMarketStore upsert semantics (monotonic is_trading, first_seen kept)
- PostgresMarketStore row conversion and error mapping (Database is faked)
- Database startup retries and reconnect after a lost connection (pool is faked)

No PostgreSQL server is needed.

Run with:
    pytest tests/unit/test_market_store.py -v
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import asyncpg
import pytest

from core.config import Settings
from core.schemas import MarketRecord
from storage import InMemoryMarketStore, StoreConnectionLost, StoreError, build_store
from storage.database import Database, DatabaseConfig
from storage.postgres_store import PostgresMarketStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=1)


def make_record(market_id="BTCUSD", exchange="alpha", is_trading=False, first=T0, last=T0, **extra):
    return MarketRecord(
        id=market_id,
        exchange=exchange,
        symbol="BTC/USD",
        base="BTC",
        quote="USD",
        is_trading=is_trading,
        first_seen_at=first,
        last_seen_at=last,
        **extra,
    )


class FakePool:
    """asyncpg pool stand-in; acquire() yields `conn` or raises `error`."""

    def __init__(self, conn=None, error=None):
        self.conn = conn or SimpleNamespace(fetchval=AsyncMock(return_value=1))
        self.error = error
        self.closed = False

    @asynccontextmanager
    async def _acquire(self):
        if self.error is not None:
            raise self.error
        yield self.conn

    def acquire(self):
        return self._acquire()

    async def close(self):
        self.closed = True


# ============================================
# In-Memory Store
# ============================================

class TestInMemoryStore:
    """Dict-backed store"""

    @pytest.mark.asyncio
    async def test_insert_and_find(self, store):
        await store.upsert(make_record())

        assert await store.count() == 1
        assert (await store.find_one("BTCUSD", "alpha")).symbol == "BTC/USD"
        assert await store.find_one("BTCUSD", "beta") is None

    @pytest.mark.asyncio
    async def test_same_id_on_two_exchanges_are_distinct(self, store):
        await store.upsert(make_record(exchange="alpha"))
        await store.upsert(make_record(exchange="beta"))

        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_update_keeps_first_seen(self, store):
        await store.upsert(make_record(first=T0, last=T0))
        stored = await store.upsert(make_record(first=T1, last=T1))

        assert stored.first_seen_at == T0
        assert stored.last_seen_at == T1
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_is_trading_never_regresses(self, store):
        await store.upsert(make_record(is_trading=True))
        stored = await store.upsert(make_record(is_trading=False))

        assert stored.is_trading is True
        assert (await store.find_one("BTCUSD", "alpha")).is_trading is True

    @pytest.mark.asyncio
    async def test_is_trading_can_become_true(self, store):
        await store.upsert(make_record(is_trading=False))
        stored = await store.upsert(make_record(is_trading=True))

        assert stored.is_trading is True


# ============================================
# Store Selection
# ============================================

class TestBuildStore:
    """build_store() picks the backend from settings"""

    def test_in_memory_without_database_url(self):
        assert isinstance(build_store(Settings(_env_file=None)), InMemoryMarketStore)

    def test_postgres_with_database_url(self):
        config = Settings(
            _env_file=None,
            database_url="postgresql://user:pw@localhost/markets",
            store_startup_attempts=3,
            store_reconnect_interval=0.25,
        )

        store = build_store(config)

        assert isinstance(store, PostgresMarketStore)
        assert store.db.config.startup_attempts == 3
        assert store.db.config.reconnect_interval == 0.25


# ============================================
# PostgreSQL Store (Database faked)
# ============================================

class TestPostgresStore:
    """Row mapping and error translation"""

    @pytest.fixture
    def db(self):
        return SimpleNamespace(fetchrow=AsyncMock(), fetchval=AsyncMock(), execute=AsyncMock())

    def test_row_conversion(self, db):
        store = PostgresMarketStore(db)
        row = {
            "id": "BTCUSD",
            "exchange": "alpha",
            "symbol": "BTC/USD",
            "base": "BTC",
            "quote": "USD",
            "is_trading": True,
            "metadata": '{"type": "spot"}',
            "first_seen_at": datetime(2024, 1, 1),
            "last_seen_at": datetime(2024, 1, 2),
        }

        record = store._record_to_model(row)

        assert record.metadata == {"type": "spot"}
        assert record.first_seen_at.tzinfo is timezone.utc
        assert record.is_trading is True

    def test_missing_row(self, db):
        assert PostgresMarketStore(db)._record_to_model(None) is None

    @pytest.mark.asyncio
    async def test_find_one_queries_by_key(self, db):
        db.fetchrow.return_value = None
        store = PostgresMarketStore(db)

        assert await store.find_one("BTCUSD", "alpha") is None
        _, market_id, exchange = db.fetchrow.await_args.args
        assert (market_id, exchange) == ("BTCUSD", "alpha")

    @pytest.mark.asyncio
    async def test_upsert_sends_all_columns(self, db):
        record = make_record(metadata={"type": "spot"})
        db.fetchrow.return_value = {**record.model_dump(), "metadata": {"type": "spot"}}
        store = PostgresMarketStore(db)

        stored = await store.upsert(record)

        args = db.fetchrow.await_args.args
        assert "ON CONFLICT (id, exchange)" in args[0]
        assert "markets.is_trading OR EXCLUDED.is_trading" in args[0]
        assert args[1:3] == ("BTCUSD", "alpha")
        assert args[7] == '{"type": "spot"}'
        assert stored == record

    @pytest.mark.asyncio
    async def test_postgres_error_becomes_store_error(self, db):
        db.fetchrow.side_effect = asyncpg.PostgresError("relation does not exist")
        store = PostgresMarketStore(db)

        with pytest.raises(StoreError):
            await store.upsert(make_record())

    @pytest.mark.asyncio
    async def test_query_timeout_becomes_store_error(self, db):
        db.fetchrow.side_effect = asyncio.TimeoutError()
        store = PostgresMarketStore(db)

        with pytest.raises(StoreError, match="find_one BTCUSD \\[alpha\\]"):
            await store.find_one("BTCUSD", "alpha")

    @pytest.mark.asyncio
    async def test_connection_lost_passes_through(self, db):
        db.fetchval.side_effect = StoreConnectionLost("Database is not connected")
        store = PostgresMarketStore(db)

        with pytest.raises(StoreConnectionLost):
            await store.count()

    @pytest.mark.asyncio
    async def test_initialize_creates_table(self, db):
        db.initialize = AsyncMock()
        store = PostgresMarketStore(db)

        await store.initialize()

        db.initialize.assert_awaited_once()
        assert "CREATE TABLE IF NOT EXISTS markets" in db.execute.await_args.args[0]


# ============================================
# Database Connection Policy (pool faked)
# ============================================

class TestDatabase:
    """Startup retries and background reconnect"""

    @pytest.fixture
    def config(self):
        return DatabaseConfig(url="postgresql://localhost/markets", reconnect_interval=0, startup_attempts=3)

    @pytest.mark.asyncio
    async def test_startup_succeeds_after_retries(self, config, monkeypatch):
        db = Database(config)
        create = AsyncMock(side_effect=[OSError("refused"), OSError("refused"), FakePool()])
        monkeypatch.setattr(db, "_create_pool", create)

        await db.initialize()

        assert db.is_connected
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_startup_gives_up(self, config, monkeypatch):
        db = Database(config)
        create = AsyncMock(side_effect=OSError("refused"))
        monkeypatch.setattr(db, "_create_pool", create)

        with pytest.raises(RuntimeError, match="after 3 attempts"):
            await db.initialize()

        assert create.await_count == 3
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_query_without_pool_raises_connection_lost(self, config, monkeypatch):
        db = Database(config)
        monkeypatch.setattr(db, "_create_pool", AsyncMock(return_value=FakePool()))

        with pytest.raises(StoreConnectionLost):
            await db.fetchval("SELECT 1")

        await db._reconnect_task
        assert db.is_connected
        await db.close()

    @pytest.mark.asyncio
    async def test_lost_connection_reconnects_in_background(self, config, monkeypatch):
        db = Database(config)
        broken = FakePool(error=ConnectionResetError("reset by peer"))
        healthy = FakePool(conn=SimpleNamespace(fetchval=AsyncMock(return_value=42)))
        create = AsyncMock(side_effect=[broken, OSError("still down"), healthy])
        monkeypatch.setattr(db, "_create_pool", create)
        await db.initialize()

        with pytest.raises(StoreConnectionLost):
            await db.fetchval("SELECT COUNT(*) FROM markets")

        assert broken.closed
        await asyncio.wait_for(db._reconnect_task, timeout=1)

        assert await db.fetchval("SELECT COUNT(*) FROM markets") == 42
        assert create.await_count == 3
        await db.close()

    @pytest.mark.asyncio
    async def test_query_timeout_keeps_pool(self, config, monkeypatch):
        db = Database(config)
        slow = SimpleNamespace(fetchval=AsyncMock(side_effect=[1, asyncio.TimeoutError(), 7]))
        pool = FakePool(conn=slow)
        monkeypatch.setattr(db, "_create_pool", AsyncMock(return_value=pool))
        await db.initialize()
        await db.fetchval("SELECT 1")

        with pytest.raises(asyncio.TimeoutError):
            await db.fetchval("SELECT COUNT(*) FROM markets")

        assert db.is_connected
        assert not db.is_reconnecting
        assert not pool.closed
        assert await db.fetchval("SELECT COUNT(*) FROM markets") == 7
        await db.close()

    @pytest.mark.asyncio
    async def test_close_cancels_reconnect(self, config, monkeypatch):
        db = Database(config.model_copy(update={"reconnect_interval": 10}))
        monkeypatch.setattr(db, "_create_pool", AsyncMock(side_effect=OSError("refused")))

        with pytest.raises(StoreConnectionLost):
            await db.fetchval("SELECT 1")
        assert db.is_reconnecting

        await db.close()

        assert not db.is_reconnecting


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
