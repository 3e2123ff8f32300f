"""
Unit Tests for the Unified (ccxt) Markets Client

These tests replace the ccxt client with a fake so no HTTP requests are made.
They verify normalization of ccxt market dicts, retry on network errors and
the mapping of every ccxt failure to ExchangeFetchError.

Run with:
    pytest tests/unit/test_unified_api_client.py -v
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import ccxt.async_support as ccxt_async
import pytest

from core.config import ExchangeConfig
from core.exchange_interface import ExchangeFetchError
from exchanges.unified import UnifiedExchange
from exchanges.unified.api_client import MarketsAPIClient, is_supported_exchange


RAW_MARKETS = {
    "BTC/USDT": {
        "id": "BTCUSDT",
        "symbol": "BTC/USDT",
        "base": "BTC",
        "quote": "USDT",
        "active": True,
        "type": "spot",
        "spot": True,
        "precision": {"amount": 0.0001, "price": 0.01},
        "info": {"status": "TRADING"},
    },
    "NEW/USDT": {
        "id": "NEWUSDT",
        "symbol": "NEW/USDT",
        "base": "NEW",
        "quote": "USDT",
        "active": False,
        "type": "spot",
    },
    "ODD/USDT": {
        "id": "ODDUSDT",
        "symbol": "ODD/USDT",
        "base": "ODD",
        "quote": "USDT",
        "active": None,
    },
}


def fake_ccxt_client(*results):
    """ccxt stand-in whose load_markets returns (or raises) each result in turn."""
    return SimpleNamespace(load_markets=AsyncMock(side_effect=list(results)), close=AsyncMock())


@pytest.fixture
def no_sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr("exchanges.unified.api_client.asyncio.sleep", sleep)
    return sleep


# ============================================
# Normalization
# ============================================

class TestNormalization:
    """ccxt market dict -> MarketSnapshot"""

    @pytest.mark.asyncio
    async def test_markets_normalized(self):
        client = MarketsAPIClient("binance", client=fake_ccxt_client(RAW_MARKETS))

        snapshots = await client.load_markets()

        assert [s.id for s in snapshots] == ["BTCUSDT", "NEWUSDT", "ODDUSDT"]
        btc = snapshots[0]
        assert btc.exchange == "binance"
        assert btc.symbol == "BTC/USDT"
        assert btc.base == "BTC"
        assert btc.quote == "USDT"
        assert btc.active is True

    @pytest.mark.asyncio
    async def test_active_flag_preserved(self):
        client = MarketsAPIClient("binance", client=fake_ccxt_client(RAW_MARKETS))

        snapshots = await client.load_markets()

        assert [s.active for s in snapshots] == [True, False, None]

    @pytest.mark.asyncio
    async def test_metadata_excludes_raw_info(self):
        client = MarketsAPIClient("binance", client=fake_ccxt_client(RAW_MARKETS))

        btc = (await client.load_markets())[0]

        assert btc.metadata["type"] == "spot"
        assert btc.metadata["precision"] == {"amount": 0.0001, "price": 0.01}
        assert "info" not in btc.metadata

    @pytest.mark.asyncio
    async def test_market_without_id_skipped(self):
        raw = {"X/Y": {"symbol": "X/Y", "base": "X", "quote": "Y"}, **RAW_MARKETS}
        client = MarketsAPIClient("binance", client=fake_ccxt_client(raw))

        snapshots = await client.load_markets()

        assert len(snapshots) == 3

    @pytest.mark.asyncio
    async def test_empty_response(self):
        client = MarketsAPIClient("binance", client=fake_ccxt_client(None))
        assert await client.load_markets() == []

    @pytest.mark.asyncio
    async def test_markets_reloaded_every_call(self):
        fake = fake_ccxt_client(RAW_MARKETS, RAW_MARKETS)
        client = MarketsAPIClient("binance", client=fake)

        await client.load_markets()
        await client.load_markets()

        assert fake.load_markets.await_count == 2
        fake.load_markets.assert_awaited_with(True)


# ============================================
# Error Handling
# ============================================

class TestErrors:
    """Retry and error mapping"""

    @pytest.mark.asyncio
    async def test_network_error_retried(self, no_sleep):
        fake = fake_ccxt_client(ccxt_async.RequestTimeout("timed out"), RAW_MARKETS)
        client = MarketsAPIClient("kraken", client=fake)

        snapshots = await client.load_markets()

        assert len(snapshots) == 3
        assert fake.load_markets.await_count == 2
        no_sleep.assert_awaited_once_with(1.5)

    @pytest.mark.asyncio
    async def test_network_error_exhausts_attempts(self, no_sleep):
        errors = [ccxt_async.NetworkError("down") for _ in range(3)]
        client = MarketsAPIClient("kraken", client=fake_ccxt_client(*errors), max_attempts=3)

        with pytest.raises(ExchangeFetchError, match="after 3 attempts"):
            await client.load_markets()

        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_network_error_not_retried(self, no_sleep):
        fake = fake_ccxt_client(ccxt_async.AuthenticationError("bad key"))
        client = MarketsAPIClient("kraken", client=fake)

        with pytest.raises(ExchangeFetchError) as exc_info:
            await client.load_markets()

        assert exc_info.value.exchange == "kraken"
        assert "AuthenticationError" in str(exc_info.value)
        assert fake.load_markets.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uninitialized_client(self):
        client = MarketsAPIClient("kraken")
        with pytest.raises(ExchangeFetchError, match="not initialized"):
            await client.load_markets()

    def test_unknown_exchange_id(self):
        client = MarketsAPIClient("not-an-exchange")
        with pytest.raises(ValueError, match="Unknown ccxt exchange id"):
            client.open()


# ============================================
# Client Lifecycle
# ============================================

class TestLifecycle:
    """Creation and closing of the ccxt client"""

    def test_supported_exchange_ids(self):
        assert is_supported_exchange("binance")
        assert not is_supported_exchange("not-an-exchange")

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        fake = fake_ccxt_client(RAW_MARKETS)

        async with MarketsAPIClient("binance", client=fake) as client:
            await client.load_markets()

        fake.close.assert_awaited_once()
        assert client.client is None

    @pytest.mark.asyncio
    async def test_open_builds_rate_limited_client(self):
        client = MarketsAPIClient("kraken", credentials={"apiKey": "key"}, timeout=5)
        client.open()
        try:
            assert client.client.enableRateLimit is True
            assert client.client.timeout == 5000
            assert client.client.apiKey == "key"
        finally:
            await client.close()


# ============================================
# Unified Connector
# ============================================

class TestUnifiedExchange:
    """ExchangeInterface implementation on top of the client"""

    def test_unknown_exchange_rejected(self):
        with pytest.raises(ValueError):
            UnifiedExchange(ExchangeConfig(name="not-an-exchange"))

    @pytest.mark.asyncio
    async def test_load_markets_delegates_to_client(self):
        exchange = UnifiedExchange(ExchangeConfig(name="binance"))
        exchange.client = MarketsAPIClient("binance", client=fake_ccxt_client(RAW_MARKETS))

        snapshots = await exchange.load_markets()

        assert {s.exchange for s in snapshots} == {"binance"}

    @pytest.mark.asyncio
    async def test_health_check_false_on_fetch_error(self):
        exchange = UnifiedExchange(ExchangeConfig(name="binance"))
        exchange.client = MarketsAPIClient(
            "binance", client=fake_ccxt_client(ccxt_async.ExchangeError("maintenance"))
        )

        assert await exchange.health_check() is False

    @pytest.mark.asyncio
    async def test_shutdown_closes_client(self):
        exchange = UnifiedExchange(ExchangeConfig(name="binance"))
        fake = fake_ccxt_client(RAW_MARKETS)
        exchange.client = MarketsAPIClient("binance", client=fake)

        await exchange.shutdown()

        fake.close.assert_awaited_once()
        assert exchange.client is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
