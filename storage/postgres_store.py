"""
PostgreSQL-backed market store.

Table layout (created on initialize):

    markets(
        id text, exchange text, symbol text, base text, quote text,
        is_trading boolean, metadata jsonb,
        first_seen_at timestamptz, last_seen_at timestamptz,
        PRIMARY KEY (id, exchange)
    )

Upserts use ON CONFLICT so each (id, exchange) write is a single atomic
statement; is_trading is OR-ed with the stored value so it never regresses.
"""

import asyncio
import json
from typing import Optional

import asyncpg

from core.logging import get_logger
from core.schemas import MarketRecord
from core.utils.time import ensure_utc
from storage.database import Database
from storage.market_store import MarketStore, StoreError

logger = get_logger(__name__)

# Failures of a single statement (asyncpg raises TimeoutError on command_timeout)
QUERY_ERRORS = (asyncpg.PostgresError, asyncio.TimeoutError)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS markets (
        id            TEXT        NOT NULL,
        exchange      TEXT        NOT NULL,
        symbol        TEXT        NOT NULL DEFAULT '',
        base          TEXT        NOT NULL DEFAULT '',
        quote         TEXT        NOT NULL DEFAULT '',
        is_trading    BOOLEAN     NOT NULL DEFAULT FALSE,
        metadata      JSONB       NOT NULL DEFAULT '{}'::jsonb,
        first_seen_at TIMESTAMPTZ NOT NULL,
        last_seen_at  TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (id, exchange)
    )
"""

UPSERT = """
    INSERT INTO markets
    (id, exchange, symbol, base, quote, is_trading, metadata, first_seen_at, last_seen_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
    ON CONFLICT (id, exchange) DO UPDATE
    SET symbol = EXCLUDED.symbol,
        base = EXCLUDED.base,
        quote = EXCLUDED.quote,
        is_trading = markets.is_trading OR EXCLUDED.is_trading,
        metadata = EXCLUDED.metadata,
        last_seen_at = EXCLUDED.last_seen_at
    RETURNING *
"""


class PostgresMarketStore(MarketStore):
    """
    Market store on top of Database.

    Usage:
        store = PostgresMarketStore(Database(DatabaseConfig(url=...)))
        await store.initialize()
        record = await store.find_one("BTCUSDT", "binance")
    """

    table_name = "markets"

    def __init__(self, db: Database) -> None:
        self.db = db

    async def initialize(self) -> None:
        """Connect and make sure the markets table exists."""
        await self.db.initialize()
        await self.db.execute(SCHEMA)
        logger.info("Market store ready (PostgreSQL)")

    async def close(self) -> None:
        await self.db.close()

    def _record_to_model(self, row) -> Optional[MarketRecord]:
        """Convert asyncpg Record to MarketRecord."""
        if row is None:
            return None
        data = dict(row)
        if isinstance(data.get("metadata"), str):
            data["metadata"] = json.loads(data["metadata"])
        data["first_seen_at"] = ensure_utc(data["first_seen_at"])
        data["last_seen_at"] = ensure_utc(data["last_seen_at"])
        return MarketRecord(**data)

    async def count(self) -> int:
        try:
            return await self.db.fetchval(f"SELECT COUNT(*) FROM {self.table_name}")
        except QUERY_ERRORS as e:
            raise StoreError(f"count failed: {e!r}") from e

    async def find_one(self, market_id: str, exchange: str) -> Optional[MarketRecord]:
        query = f"SELECT * FROM {self.table_name} WHERE id = $1 AND exchange = $2"
        try:
            row = await self.db.fetchrow(query, market_id, exchange)
        except QUERY_ERRORS as e:
            raise StoreError(f"find_one {market_id} [{exchange}] failed: {e!r}") from e
        return self._record_to_model(row)

    async def upsert(self, record: MarketRecord) -> MarketRecord:
        try:
            row = await self.db.fetchrow(
                UPSERT,
                record.id,
                record.exchange,
                record.symbol,
                record.base,
                record.quote,
                record.is_trading,
                json.dumps(record.metadata, default=str),
                record.first_seen_at,
                record.last_seen_at,
            )
        except QUERY_ERRORS as e:
            raise StoreError(f"upsert {record.id} [{record.exchange}] failed: {e!r}") from e

        logger.debug(f"Upserted {record.id} [{record.exchange}] to db")
        return self._record_to_model(row)
