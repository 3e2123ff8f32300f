"""
Unified Markets API Client

This module wraps a ccxt async exchange client and turns its market listing
into normalized MarketSnapshot objects. It handles:
- Retry logic for transient network errors and rate limits
- Collapsing every ccxt failure into ExchangeFetchError
- Normalizing ccxt market dicts to our schema

Library Documentation:
    https://docs.ccxt.com/#/README?id=loading-markets

Usage:
    async with MarketsAPIClient("binance", {"apiKey": "..."}) as client:
        snapshots = await client.load_markets()
"""

import asyncio
from typing import Any, Dict, List, Optional

import ccxt.async_support as ccxt_async

from core.exchange_interface import ExchangeFetchError
from core.logging import get_logger
from core.schemas import MarketSnapshot

# ccxt market keys copied into snapshot metadata (the raw "info" payload is dropped)
METADATA_KEYS = (
    "type", "spot", "margin", "swap", "future", "option",
    "contract", "settle", "precision", "limits",
)


def is_supported_exchange(name: str) -> bool:
    """True if ccxt ships an exchange class with this id."""
    return name in ccxt_async.exchanges


class MarketsAPIClient:
    """
    Async client that loads one exchange's markets through ccxt.

    Attributes:
        exchange_name: ccxt exchange id (e.g., "binance")
        credentials: Options passed to the ccxt constructor (apiKey, secret, ...)
        timeout: Request timeout in seconds
        max_attempts: Attempts per load before giving up

    Example:
        >>> async with MarketsAPIClient("kraken") as client:
        ...     snapshots = await client.load_markets()
        ...     print(f"Fetched {len(snapshots)} markets")

    Notes:
        - ccxt's built-in rate limiter is always enabled
        - Authentication and other non-network errors are not retried
    """

    def __init__(
        self,
        exchange_name: str,
        credentials: Optional[Dict[str, Any]] = None,
        timeout: int = 30,
        max_attempts: int = 3,
        client: Any = None,
    ):
        """
        Initialize the markets client.

        Args:
            exchange_name: ccxt exchange id
            credentials: ccxt constructor options
            timeout: Request timeout in seconds
            max_attempts: Attempts per load_markets call
            client: Pre-built ccxt client (used by tests)
        """
        self.exchange_name = exchange_name
        self.credentials = dict(credentials or {})
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.client = client
        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager for Client Lifecycle
    # ============================================

    async def __aenter__(self):
        """Enter async context - creates the ccxt client."""
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - closes the ccxt client's HTTP session."""
        await self.close()

    def open(self) -> None:
        """
        Create the ccxt client if it does not exist yet.

        Raises:
            ValueError: If ccxt has no exchange with this id
        """
        if self.client is not None:
            return

        if not is_supported_exchange(self.exchange_name):
            raise ValueError(f"Unknown ccxt exchange id: '{self.exchange_name}'")

        exchange_class = getattr(ccxt_async, self.exchange_name)
        options = {
            "enableRateLimit": True,
            "timeout": self.timeout * 1000,  # ccxt expects milliseconds
        }
        options.update(self.credentials)
        self.client = exchange_class(options)
        self.logger.debug(f"ccxt client created for {self.exchange_name}")

    async def close(self) -> None:
        """Close the underlying ccxt client."""
        if self.client is not None:
            await self.client.close()
            self.client = None
            self.logger.debug(f"ccxt client closed for {self.exchange_name}")

    # ============================================
    # Request Handler with Retry Logic
    # ============================================

    async def _fetch_raw_markets(self) -> Dict[str, Dict[str, Any]]:
        """
        Load markets from ccxt with retry logic.

        Retries on ccxt.NetworkError (timeouts, rate limits, DDoS protection,
        exchange unavailable) with a linear backoff of 1.5s * attempt.

        Raises:
            ExchangeFetchError: If the load fails after all retries or with a
                                non-retryable error
        """
        if self.client is None:
            raise ExchangeFetchError(self.exchange_name, "Client not initialized")

        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                markets = await self.client.load_markets(True)
                self.logger.debug(
                    f"load_markets {self.exchange_name} - Success (attempt {attempt + 1})"
                )
                return markets or {}

            except ccxt_async.NetworkError as e:
                last_error = e
                delay = 1.5 * (attempt + 1)
                self.logger.warning(
                    f"Network error loading {self.exchange_name} markets: {e}. "
                    f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{self.max_attempts})"
                )
                if attempt + 1 < self.max_attempts:
                    await asyncio.sleep(delay)

            except ccxt_async.BaseError as e:
                raise ExchangeFetchError(self.exchange_name, f"{type(e).__name__}: {e}") from e

        raise ExchangeFetchError(
            self.exchange_name,
            f"Failed to load markets after {self.max_attempts} attempts: {last_error}"
        )

    # ============================================
    # API Methods
    # ============================================

    async def load_markets(self) -> List[MarketSnapshot]:
        """
        Fetch and normalize every market the exchange lists.

        Returns:
            List[MarketSnapshot]: Snapshots in the order ccxt returned them

        Raises:
            ExchangeFetchError: On any fetch failure
        """
        raw_markets = await self._fetch_raw_markets()

        snapshots = []
        for market in raw_markets.values():
            snapshot = self._parse_market(market)
            if snapshot is not None:
                snapshots.append(snapshot)

        self.logger.info(f"Markets loaded for {self.exchange_name}: {len(snapshots)}")
        return snapshots

    def _parse_market(self, market: Dict[str, Any]) -> Optional[MarketSnapshot]:
        """
        Normalize one ccxt market dict.

        Returns None (and logs) for entries without an id.

        Example ccxt market:
            {"id": "BTCUSDT", "symbol": "BTC/USDT", "base": "BTC", "quote": "USDT",
             "active": True, "type": "spot", "spot": True, ...}
        """
        market_id = market.get("id")
        if not market_id:
            self.logger.warning(f"Skipping {self.exchange_name} market without id: {market.get('symbol')}")
            return None

        active = market.get("active")
        return MarketSnapshot(
            id=str(market_id),
            exchange=self.exchange_name,
            symbol=market.get("symbol") or "",
            base=market.get("base") or "",
            quote=market.get("quote") or "",
            active=None if active is None else bool(active),
            metadata={key: market[key] for key in METADATA_KEYS if key in market},
        )
