"""
Storage Package

Handles persistence of market records.

Implementations:
- InMemoryMarketStore: used when DATABASE_URL is empty
- PostgresMarketStore: asyncpg pool with startup retries and background reconnects

The pipeline only depends on the MarketStore interface, so the backend can be
swapped without touching the services.
"""

from storage.market_store import (
    InMemoryMarketStore,
    MarketStore,
    StoreConnectionLost,
    StoreError,
)

__all__ = ["InMemoryMarketStore", "MarketStore", "StoreConnectionLost", "StoreError", "build_store"]


def build_store(config) -> MarketStore:
    """
    Create the store selected by the settings.

    Args:
        config: Application settings

    Returns:
        PostgresMarketStore if DATABASE_URL is set, otherwise InMemoryMarketStore
    """
    if not config.use_database:
        return InMemoryMarketStore()

    # Import here so the in-memory path doesn't need asyncpg loaded
    from storage.database import Database, DatabaseConfig
    from storage.postgres_store import PostgresMarketStore

    return PostgresMarketStore(Database(DatabaseConfig(
        url=config.database_url,
        command_timeout=config.store_command_timeout,
        reconnect_interval=config.store_reconnect_interval,
        startup_attempts=config.store_startup_attempts,
    )))
