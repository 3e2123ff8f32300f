"""
Shared fixtures and fakes for unit tests.

Everything here runs in-process: no network, no database.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest
import pytest_asyncio

from core.exchange_interface import ExchangeInterface
from core.schemas import MarketRecord, MarketSnapshot, RunContext
from notifications.channel import DeliveryError, NotificationChannel
from services.reconciler import MarketReconciler
from storage.market_store import InMemoryMarketStore, StoreError


# ============================================
# Fakes
# ============================================

class FakeExchange(ExchangeInterface):
    """
    Exchange returning scripted responses.

    Each load_markets() call consumes the next response; the last one repeats.
    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, name: str, *responses):
        self.name = name
        self.responses = list(responses) or [[]]
        self.calls = 0

    async def load_markets(self) -> List[MarketSnapshot]:
        index = min(self.calls, len(self.responses) - 1)
        self.calls += 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return list(response)


class RecordingChannel(NotificationChannel):
    """Channel that records sends and tracks how many run at once."""

    def __init__(
        self,
        name: str,
        subscribers: List[str],
        fail: bool = False,
        enabled: bool = True,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        super().__init__(subscribers, enabled)
        self.name = name
        self.fail = fail
        self.delay = delay
        self.error = error
        self.sent = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, recipient: str, message: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if self.fail:
                raise DeliveryError(self.name, recipient, "provider down")
            self.sent.append((recipient, message))
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


class FailingStore(InMemoryMarketStore):
    """In-memory store whose writes fail for selected market ids."""

    def __init__(self, failing_ids):
        super().__init__()
        self.failing_ids = set(failing_ids)

    async def upsert(self, record: MarketRecord) -> MarketRecord:
        if record.id in self.failing_ids:
            raise StoreError(f"write rejected for {record.id}")
        return await super().upsert(record)


def make_snapshot(symbol: str, exchange: str = "alpha", active: Optional[bool] = None) -> MarketSnapshot:
    base, quote = symbol.split("/")
    return MarketSnapshot(
        id=f"{base}{quote}",
        exchange=exchange,
        symbol=symbol,
        base=base,
        quote=quote,
        active=active,
        metadata={"type": "spot"},
    )


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def snapshot():
    """Factory for MarketSnapshot objects: snapshot("BTC/USD", active=True)"""
    return make_snapshot


@pytest.fixture
def fake_exchange():
    """Factory for FakeExchange objects"""
    return FakeExchange


@pytest.fixture
def recording_channel():
    """Factory for RecordingChannel objects"""
    return RecordingChannel


@pytest.fixture
def failing_store():
    """Factory for FailingStore objects"""
    return FailingStore


@pytest.fixture
def store():
    """Empty in-memory store"""
    return InMemoryMarketStore()


@pytest.fixture
def fixed_now():
    """Clock returning a fixed UTC time"""
    moment = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return lambda: moment


@pytest_asyncio.fixture
async def seeded_store(store):
    """In-memory store already holding alpha's BTC/USD from a seed run"""
    record, _ = MarketReconciler().reconcile(make_snapshot("BTC/USD"), None, RunContext(is_seed_run=True))
    await store.upsert(record)
    return store
