"""
Exchange Interface — Abstract Contract for All Exchanges

This module defines the abstract base class that all exchange connectors must implement.
By enforcing a consistent interface, we ensure:
- All exchanges expose the same methods
- Easy to add new exchanges without modifying core logic
- Every fetch failure reaches the pipeline as one error kind (ExchangeFetchError)

Design Philosophy:
    "Program to an interface, not an implementation"

    The exchange processor and cycle scheduler work with ExchangeInterface,
    not specific exchange implementations.

Example:
    class KrakenExchange(ExchangeInterface):
        name = "kraken"

        async def load_markets(self):
            # Kraken-specific implementation
            ...

    exchange = manager.get_exchange("kraken")
    snapshots = await exchange.load_markets()
"""

from abc import ABC, abstractmethod
from typing import List
from core.schemas import MarketSnapshot


class ExchangeFetchError(Exception):
    """
    Raised when an exchange's market list cannot be fetched.

    Network errors, authentication failures, rate limits and malformed
    responses all collapse to this one error kind.
    """

    def __init__(self, exchange: str, message: str):
        self.exchange = exchange
        super().__init__(f"[{exchange}] {message}")


class ExchangeInterface(ABC):
    """
    Abstract Base Class for Exchange Connectors

    Class Attributes:
        name: Unique identifier for the exchange (lowercase, e.g., "binance", "kraken")

    Abstract Methods (MUST be implemented by all exchanges):
        - load_markets: Fetch the current list of markets

    Optional Methods (can be overridden):
        - initialize: Setup connections, sessions, etc.
        - shutdown: Cleanup connections
        - health_check: Verify exchange API is accessible
    """

    name: str
    """Unique exchange identifier (lowercase). Example: "binance", "kraken" """

    # ============================================
    # REST API Methods (Snapshot Data)
    # ============================================

    @abstractmethod
    async def load_markets(self) -> List[MarketSnapshot]:
        """
        Fetch the exchange's current list of markets.

        Returns:
            List[MarketSnapshot]: One snapshot per market, exchange name already set.
                                  Order is the exchange's order and carries no meaning.

        Raises:
            ExchangeFetchError: For network errors, API errors, auth failures or rate limits

        Example:
            >>> snapshots = await exchange.load_markets()
            >>> print(f"{exchange.name} lists {len(snapshots)} markets")

        Notes:
            - Must not return partial results: either the full list or an error
            - Implementations enforce their own timeout; never hang the cycle
        """
        ...

    # ============================================
    # Optional Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """
        Initialize the exchange connector.

        Notes:
            - This is optional; default implementation does nothing
            - Called automatically by ExchangeManager
            - Should be idempotent (safe to call multiple times)
        """
        pass

    async def shutdown(self) -> None:
        """
        Shutdown the exchange connector and cleanup resources.

        Notes:
            - This is optional; default implementation does nothing
            - Should handle errors gracefully (don't raise exceptions)
        """
        pass

    async def health_check(self) -> bool:
        """
        Check if the exchange API is accessible and healthy.

        Returns:
            bool: True if exchange is accessible, False otherwise
        """
        return True

    def __repr__(self) -> str:
        """String representation of the exchange."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
