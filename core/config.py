"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Parses the exchange list from a JSON environment variable
- Converts comma-separated subscriber strings to lists
- Validates notification channels that are switched on
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.cycle_interval_seconds)
    print(settings.enabled_exchanges)      # Returns a list of ExchangeConfig
    print(settings.sms_subscribers_list)   # Returns a list of phone numbers

Example .env:
    EXCHANGES=[{"name": "binance", "enabled": true}, {"name": "kraken", "enabled": false}]
    SMS_ENABLED=true
    SMS_SUBSCRIBERS=+15550001111,+15550002222
    SMS_FROM=+15559990000
"""

from typing import Any, Dict, List
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ============================================
# Exchange Entry
# ============================================

class ExchangeConfig(BaseModel):
    """
    One configured exchange.

    Attributes:
        name: ccxt exchange id (lowercase, e.g. "binance", "kraken")
        enabled: Whether the exchange is polled each cycle
        credentials: Extra ccxt constructor options (apiKey, secret, password, ...)
    """

    name: str = Field(..., min_length=1, description="ccxt exchange id")
    enabled: bool = Field(default=True, description="Poll this exchange each cycle")
    credentials: Dict[str, Any] = Field(
        default_factory=dict,
        description="Options passed through to the ccxt client (apiKey, secret, ...)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure exchange name is lowercase"""
        return v.strip().lower()


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        exchanges: Exchanges to watch, in the order they are processed
        cycle_interval_seconds: Delay between the end of one cycle and the start of the next
        exchange_concurrency: How many exchanges may be fetched at once (1 = sequential)
        request_timeout: Timeout for exchange requests in seconds
        trading_check: Trading-status policy for new markets ("always" or "active_flag")
        database_url: PostgreSQL DSN (empty = in-memory store)
        notify_concurrency: Maximum concurrent sends per channel
        log_level: Logging level
        log_file: Optional path for a rotating log file
    """

    # ============================================
    # Exchange Configuration
    # ============================================

    exchanges: List[ExchangeConfig] = Field(
        default_factory=lambda: [
            ExchangeConfig(name="binance"),
            ExchangeConfig(name="kraken"),
            ExchangeConfig(name="kucoin", enabled=False),
        ],
        description="JSON list of {name, enabled, credentials}"
    )

    request_timeout: int = Field(
        default=30,
        description="Exchange request timeout in seconds"
    )

    trading_check: str = Field(
        default="always",
        description="Trading-status policy for newly seen markets (always, active_flag)"
    )

    # ============================================
    # Scheduling
    # ============================================

    cycle_interval_seconds: int = Field(
        default=60,
        description="Seconds to wait after a cycle completes before starting the next"
    )

    exchange_concurrency: int = Field(
        default=1,
        description="Number of exchanges processed at the same time"
    )

    # ============================================
    # Storage Configuration
    # ============================================

    database_url: str = Field(
        default="",
        description="PostgreSQL DSN (empty = in-memory store)"
    )

    store_reconnect_interval: float = Field(
        default=0.5,
        description="Fixed delay between store reconnect attempts (seconds)"
    )

    store_startup_attempts: int = Field(
        default=10,
        description="Connection attempts at startup before giving up"
    )

    store_command_timeout: float = Field(
        default=30.0,
        description="Per-query timeout for the store (seconds)"
    )

    # ============================================
    # Email Notifications
    # ============================================

    email_enabled: bool = Field(default=False, description="Send email alerts")
    email_subscribers: str = Field(default="", description="Comma-separated email addresses")
    email_from: str = Field(default="", description="Sender address")
    smtp_host: str = Field(default="localhost", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str = Field(default="", description="SMTP username (optional)")
    smtp_password: str = Field(default="", description="SMTP password (optional)")
    smtp_use_tls: bool = Field(default=True, description="Upgrade the SMTP session with STARTTLS")

    # ============================================
    # SMS Notifications (Twilio)
    # ============================================

    sms_enabled: bool = Field(default=False, description="Send SMS alerts")
    sms_subscribers: str = Field(default="", description="Comma-separated phone numbers")
    sms_from: str = Field(default="", description="Twilio sender number")
    sms_twilio_account_sid: str = Field(default="", description="Twilio account SID for SMS")
    sms_twilio_auth_token: str = Field(default="", description="Twilio auth token for SMS")

    # ============================================
    # Voice Notifications (Twilio)
    # ============================================

    voice_enabled: bool = Field(default=False, description="Place voice call alerts")
    voice_subscribers: str = Field(default="", description="Comma-separated phone numbers")
    voice_from: str = Field(default="", description="Twilio caller number")
    voice_twilio_account_sid: str = Field(default="", description="Twilio account SID for calls")
    voice_twilio_auth_token: str = Field(default="", description="Twilio auth token for calls")
    voice_callback_url: str = Field(
        default="",
        description="TwiML URL for calls (empty = speak the alert text inline)"
    )

    twilio_base_url: str = Field(
        default="https://api.twilio.com",
        description="Twilio REST API base URL"
    )

    notify_concurrency: int = Field(
        default=10,
        description="Maximum concurrent deliveries per channel"
    )

    # ============================================
    # Logging
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_file: str = Field(
        default="",
        description="Optional rotating log file path (empty = stdout only)"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Computed Properties
    # ============================================

    @property
    def enabled_exchanges(self) -> List[ExchangeConfig]:
        """
        Exchanges with enabled=True, in configured order.

        Example:
            >>> [e.name for e in settings.enabled_exchanges]
            ['binance', 'kraken']
        """
        return [exchange for exchange in self.exchanges if exchange.enabled]

    @property
    def email_subscribers_list(self) -> List[str]:
        """Convert comma-separated email subscribers to a list."""
        return _split_csv(self.email_subscribers)

    @property
    def sms_subscribers_list(self) -> List[str]:
        """Convert comma-separated SMS subscribers to a list."""
        return _split_csv(self.sms_subscribers)

    @property
    def voice_subscribers_list(self) -> List[str]:
        """Convert comma-separated voice subscribers to a list."""
        return _split_csv(self.voice_subscribers)

    @property
    def use_database(self) -> bool:
        """
        Check if PostgreSQL is configured.

        Returns:
            True if a database URL is set, False otherwise (use in-memory store)
        """
        return bool(self.database_url)


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_TRADING_CHECKS = ["always", "active_flag"]


def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.exchanges:
        raise ValueError("EXCHANGES must contain at least one exchange")

    names = [exchange.name for exchange in config.exchanges]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate exchange entries: {', '.join(duplicates)}")

    if config.cycle_interval_seconds <= 0:
        raise ValueError(
            f"Invalid CYCLE_INTERVAL_SECONDS: {config.cycle_interval_seconds}. Must be positive"
        )

    if config.exchange_concurrency < 1:
        raise ValueError(f"Invalid EXCHANGE_CONCURRENCY: {config.exchange_concurrency}. Must be >= 1")

    if config.notify_concurrency < 1:
        raise ValueError(f"Invalid NOTIFY_CONCURRENCY: {config.notify_concurrency}. Must be >= 1")

    if config.store_startup_attempts < 1:
        raise ValueError(f"Invalid STORE_STARTUP_ATTEMPTS: {config.store_startup_attempts}. Must be >= 1")

    if config.trading_check not in VALID_TRADING_CHECKS:
        raise ValueError(
            f"Invalid TRADING_CHECK: '{config.trading_check}'. "
            f"Must be one of: {', '.join(VALID_TRADING_CHECKS)}"
        )

    if config.log_level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    # Enabled channels need somebody to talk to and somebody to talk as
    channels = [
        ("EMAIL", config.email_enabled, config.email_subscribers_list, config.email_from),
        ("SMS", config.sms_enabled, config.sms_subscribers_list, config.sms_from),
        ("VOICE", config.voice_enabled, config.voice_subscribers_list, config.voice_from),
    ]
    for prefix, enabled, subscribers, sender in channels:
        if not enabled:
            continue
        if not subscribers:
            raise ValueError(f"{prefix}_ENABLED is set but {prefix}_SUBSCRIBERS is empty")
        if not sender:
            raise ValueError(f"{prefix}_ENABLED is set but {prefix}_FROM is empty")

    # Log successful validation
    logger.info("Configuration validated successfully")
    logger.info(f"Watching exchanges: {', '.join(e.name for e in config.enabled_exchanges) or 'none'}")
    logger.info(f"Cycle interval: {config.cycle_interval_seconds}s")
    logger.info(f"Store: {'PostgreSQL' if config.use_database else 'In-Memory'}")
    logger.info(
        f"Channels: email={'on' if config.email_enabled else 'off'}, "
        f"sms={'on' if config.sms_enabled else 'off'}, "
        f"voice={'on' if config.voice_enabled else 'off'}"
    )
    logger.info(f"Log level: {config.log_level.upper()}")
