"""
Exchange Manager — Central Registry for Exchange Connectors

This module provides a centralized manager for all exchange connectors.
The ExchangeManager acts as a registry and factory for exchange instances.

Design Benefits:
    - Single source of truth for the exchanges being watched
    - Deterministic processing order (the order they are configured in)
    - Centralized lifecycle management (initialize/shutdown)
    - Disabled exchanges are never instantiated

Example Usage:
    manager = ExchangeManager.from_settings(settings)
    await manager.initialize_all()

    for exchange in manager.enabled_exchanges():
        snapshots = await exchange.load_markets()

    await manager.shutdown_all()
"""

from typing import Dict, List, Optional
from core.config import Settings
from core.exchange_interface import ExchangeInterface
from core.logging import logger


class ExchangeManager:
    """
    Central Manager for Exchange Connectors

    Attributes:
        exchanges: Dictionary mapping exchange names to exchange instances,
                   in configured order
                   Example: {"binance": UnifiedExchange(...), "kraken": UnifiedExchange(...)}

    Example:
        >>> manager = ExchangeManager([UnifiedExchange(ExchangeConfig(name="binance"))])
        >>> manager.list_exchanges()
        ['binance']
    """

    def __init__(self, exchanges: Optional[List[ExchangeInterface]] = None):
        """
        Initialize the Exchange Manager with already-built connectors.

        Args:
            exchanges: Connector instances in processing order

        Raises:
            ValueError: If two connectors share a name
        """
        self.exchanges: Dict[str, ExchangeInterface] = {}
        for exchange in exchanges or []:
            if exchange.name in self.exchanges:
                raise ValueError(f"Exchange '{exchange.name}' registered twice")
            self.exchanges[exchange.name] = exchange

        logger.info(
            f"ExchangeManager initialized with {len(self.exchanges)} exchange(s): "
            f"{', '.join(self.exchanges.keys()) or 'none'}"
        )

    @classmethod
    def from_settings(cls, config: Settings, timeout: Optional[int] = None) -> "ExchangeManager":
        """
        Build connectors for every enabled exchange in the settings.

        Args:
            config: Application settings
            timeout: Request timeout in seconds (defaults to config.request_timeout)

        Raises:
            ValueError: If an exchange id is not known to ccxt
        """
        # Import here to avoid circular imports
        # Each exchange module imports from core, so we can't import at module level
        from exchanges.unified import UnifiedExchange

        timeout = timeout or config.request_timeout
        return cls([
            UnifiedExchange(exchange_config, timeout=timeout)
            for exchange_config in config.enabled_exchanges
        ])

    # ============================================
    # Exchange Retrieval Methods
    # ============================================

    def get_exchange(self, name: str) -> ExchangeInterface:
        """
        Get an exchange connector by name.

        Raises:
            ValueError: If the exchange is not registered
        """
        name = name.lower()

        if name not in self.exchanges:
            available = ", ".join(self.exchanges.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ValueError(
                f"Exchange '{name}' is not registered. "
                f"Available exchanges: {available}"
            )

        return self.exchanges[name]

    def has_exchange(self, name: str) -> bool:
        """Check if an exchange is registered (case-insensitive)."""
        return name.lower() in self.exchanges

    def list_exchanges(self) -> List[str]:
        """Names of all registered exchanges, in processing order."""
        return list(self.exchanges.keys())

    def enabled_exchanges(self) -> List[ExchangeInterface]:
        """
        Connectors to process this cycle, in configured order.

        Only enabled exchanges are ever registered, so this is every connector.
        """
        return list(self.exchanges.values())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize all registered exchanges.

        A connector that fails to initialize is logged and left registered;
        its fetches will fail and be skipped cycle by cycle.
        """
        logger.info("Initializing all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.initialize()
                logger.info(f"✓ {name} initialized successfully")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All exchanges initialized")

    async def shutdown_all(self) -> None:
        """Shutdown all exchanges gracefully."""
        logger.info("Shutting down all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.shutdown()
                logger.debug(f"✓ {name} shut down successfully")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All exchanges shut down")

    # ============================================
    # Health Check Methods
    # ============================================

    async def health_check_all(self) -> Dict[str, bool]:
        """
        Check health status of all exchanges.

        Returns:
            Dict[str, bool]: Exchange name -> True if healthy
        """
        health_status = {}
        for name, exchange in self.exchanges.items():
            try:
                health_status[name] = await exchange.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                health_status[name] = False

        return health_status

    # ============================================
    # Utility Methods
    # ============================================

    def __repr__(self) -> str:
        """String representation of the manager."""
        return f"<ExchangeManager(exchanges={list(self.exchanges.keys())})>"

    def __len__(self) -> int:
        """Number of registered exchanges."""
        return len(self.exchanges)
