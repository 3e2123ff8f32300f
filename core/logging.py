"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Starting cycle")
    log = get_logger(__name__)  # "listingwatch.services.cycle_scheduler"

Log Levels (from most to least verbose):
    DEBUG    - Detailed diagnostic information (e.g., "Upserted BTC/USDT [binance]")
    INFO     - General informational messages (e.g., "Processing exchange binance")
    WARNING  - Warnings about potential issues (e.g., "Store disconnected")
    ERROR    - Errors that don't stop the loop (e.g., "Failed to fetch markets")
    CRITICAL - Severe errors that stop startup (e.g., "Store never became reachable")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
    Set LOG_FILE to additionally write to a rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = "listingwatch"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(message)s"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file (stdout only if None)
        log_format: Custom log format string (uses default if None)

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] listingwatch Application started
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    fmt = log_format or LOG_FORMAT

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=3_000_000, backupCount=4, encoding="utf-8")
        )

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)

    return app_logger


# ============================================
# Initialize Logger with Settings
# ============================================

# Try to load log level from settings, fallback to INFO
try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, "log_level") else "INFO"
except ImportError:
    # If settings not available yet (during initial import), use INFO
    log_level = "INFO"

# Create the global logger instance
logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        >>> log = get_logger("storage.database")
        >>> log.name
        'listingwatch.storage.database'
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")



# ============================================
# Log Helper Functions
# ============================================

def log_transition(event) -> None:
    """
    Log a detected market transition with consistent formatting.

    Example:
        >>> log_transition(event)
        [INFO] Transition: listed | binance LTC/USDT | LTC is listed on binance
    """
    market = event.market
    logger.info(
        f"Transition: {event.kind.value} | {market.exchange} {market.id} | {event.message}"
    )


def log_delivery(outcome, event) -> None:
    """
    Log one delivery attempt of `event`. Failures are logged at ERROR, successes at DEBUG.

    Example:
        >>> log_delivery(outcome, event)
        [ERROR] Delivery: sms -> +15550001111 failed | kraken LTCUSD | HTTP 401
    """
    market = event.market
    if outcome.success:
        logger.debug(f"Delivery: {outcome.channel} -> {outcome.recipient} ok | {market.exchange} {market.id}")
    else:
        logger.error(
            f"Delivery: {outcome.channel} -> {outcome.recipient} failed | "
            f"{market.exchange} {market.id} | {outcome.error}"
        )


# Log that the logging system is initialized
logger.debug("Logging system initialized")
