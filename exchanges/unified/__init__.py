"""
Unified Exchange Connector

This module implements the ExchangeInterface on top of ccxt, which exposes
more than a hundred exchanges behind a single API. One UnifiedExchange is
created per configured exchange id.

Library Documentation:
    https://docs.ccxt.com/

Structure:
    exchanges/unified/
    ├── __init__.py          # This file (UnifiedExchange class)
    └── api_client.py        # ccxt wrapper with retries and normalization
"""

from typing import List, Optional
from core.config import ExchangeConfig
from core.exchange_interface import ExchangeFetchError, ExchangeInterface
from core.logging import get_logger
from core.schemas import MarketSnapshot
from .api_client import MarketsAPIClient, is_supported_exchange


class UnifiedExchange(ExchangeInterface):
    """
    ccxt-backed Exchange Connector

    Attributes:
        name: Exchange identifier (the ccxt id, e.g. "binance")
        config: The ExchangeConfig this connector was built from
        client: MarketsAPIClient (created in initialize())

    Example:
        >>> exchange = UnifiedExchange(ExchangeConfig(name="kraken"))
        >>> await exchange.initialize()
        >>> snapshots = await exchange.load_markets()
        >>> await exchange.shutdown()

    Notes:
        - Unknown exchange ids are rejected at construction time
        - Credentials are passed straight through to ccxt
    """

    def __init__(self, config: ExchangeConfig, timeout: int = 30):
        """
        Args:
            config: Exchange entry from settings
            timeout: Request timeout in seconds

        Raises:
            ValueError: If ccxt does not know this exchange id
        """
        if not is_supported_exchange(config.name):
            raise ValueError(f"Exchange '{config.name}' is not supported by ccxt")

        self.name = config.name
        self.config = config
        self.timeout = timeout
        self.client: Optional[MarketsAPIClient] = None
        self.logger = get_logger(__name__)

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        """Create the API client. Idempotent."""
        if self.client is not None:
            return

        self.client = MarketsAPIClient(
            self.name,
            credentials=self.config.credentials,
            timeout=self.timeout,
        )
        await self.client.__aenter__()
        self.logger.debug(f"{self.name} connector initialized")

    async def shutdown(self) -> None:
        """Close the API client."""
        if self.client:
            await self.client.__aexit__(None, None, None)
            self.client = None

    async def health_check(self) -> bool:
        """True if the exchange returns a market list."""
        try:
            return len(await self.load_markets()) > 0
        except ExchangeFetchError as e:
            self.logger.error(f"{self.name} health check failed: {e}")
            return False

    # ============================================
    # REST API Methods
    # ============================================

    async def load_markets(self) -> List[MarketSnapshot]:
        """
        Fetch the exchange's current markets.

        Raises:
            ExchangeFetchError: On any fetch failure
        """
        if self.client is None:
            await self.initialize()
        return await self.client.load_markets()
