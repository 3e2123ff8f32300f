"""
Market Store — Persistence Contract for Market Records

Defines the interface the pipeline uses to read and write MarketRecords, the
errors it raises, and an in-memory implementation.

Operations:
    - count(): number of records (used once at startup to detect a seed run)
    - find_one(id, exchange): the record for one market key, or None
    - upsert(record): insert or update one market key atomically

Each upsert is independent; no transaction spans more than one market.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
from core.schemas import MarketRecord


class StoreError(Exception):
    """A single store operation failed."""


class StoreConnectionLost(StoreError):
    """
    The store connection is down.

    The operation is not applied; the store keeps reconnecting in the
    background and later operations succeed once it is back.
    """


class MarketStore(ABC):
    """
    Abstract base class for market record storage.

    Implementations:
        - InMemoryMarketStore: dict-backed, used when no database is configured
        - PostgresMarketStore: asyncpg-backed (storage/postgres_store.py)
    """

    @abstractmethod
    async def count(self) -> int:
        """Number of stored market records."""
        ...

    @abstractmethod
    async def find_one(self, market_id: str, exchange: str) -> Optional[MarketRecord]:
        """Record for (market_id, exchange), or None if the market was never seen."""
        ...

    @abstractmethod
    async def upsert(self, record: MarketRecord) -> MarketRecord:
        """
        Insert or update the record for record.key and return the stored value.

        Notes:
            - is_trading never regresses: a stored True stays True
            - first_seen_at of an existing record is kept

        Raises:
            StoreError: If the write fails
        """
        ...

    async def initialize(self) -> None:
        """Open connections / create schema. Default does nothing."""
        pass

    async def close(self) -> None:
        """Release resources. Default does nothing."""
        pass


class InMemoryMarketStore(MarketStore):
    """
    Dict-backed store.

    Records live for the lifetime of the process, so every restart is a seed run.
    """

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], MarketRecord] = {}

    async def count(self) -> int:
        return len(self._records)

    async def find_one(self, market_id: str, exchange: str) -> Optional[MarketRecord]:
        return self._records.get((market_id, exchange))

    async def upsert(self, record: MarketRecord) -> MarketRecord:
        existing = self._records.get(record.key)
        if existing is not None:
            record = record.model_copy(update={
                "is_trading": existing.is_trading or record.is_trading,
                "first_seen_at": existing.first_seen_at,
            })
        self._records[record.key] = record
        return record
