"""
ListingWatch - Exchange Market Listing Alerts

Polls every enabled exchange for its market list, records what it finds and
alerts subscribers (email, SMS, voice) when a market is first listed or
becomes tradable.

Usage:
    python start.py
    python -m app.main

Exit codes:
    Runs forever in normal operation.
    1 - startup failed (invalid configuration, store unreachable, unknown exchange)
"""

import asyncio
import sys

from core.config import Settings, settings, validate_configuration
from core.exchange_manager import ExchangeManager
from core.logging import logger, setup_logging
from notifications import build_channels
from services.cycle_scheduler import CycleScheduler
from services.exchange_processor import ExchangeProcessor
from services.notification_dispatcher import NotificationDispatcher
from services.reconciler import MarketReconciler, get_trading_check
from storage import build_store


async def run(config: Settings) -> None:
    """Build every collaborator once, then run the scheduler until cancelled."""
    logger.info("=== ListingWatch Starting ===")

    store = build_store(config)
    manager = ExchangeManager.from_settings(config)
    dispatcher = NotificationDispatcher(
        build_channels(config),
        max_concurrency=config.notify_concurrency,
    )

    try:
        await store.initialize()
        await manager.initialize_all()

        processor = ExchangeProcessor(
            store,
            MarketReconciler(is_currently_trading=get_trading_check(config.trading_check)),
            dispatcher,
        )
        scheduler = CycleScheduler(
            manager,
            processor,
            store,
            interval_seconds=config.cycle_interval_seconds,
            exchange_concurrency=config.exchange_concurrency,
        )

        logger.info("=== Started Successfully ===")
        await scheduler.run()
    finally:
        logger.info("=== Shutting Down ===")
        await manager.shutdown_all()
        await dispatcher.close()
        await store.close()


def main() -> int:
    setup_logging(settings.log_level, settings.log_file or None)

    try:
        validate_configuration(settings)
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except Exception as e:
        logger.critical(f"Startup failed: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
