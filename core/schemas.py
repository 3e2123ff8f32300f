"""
Normalized Data Schemas

This module defines Pydantic models for every value that flows through the
reconciliation pipeline. These schemas provide a unified, exchange-agnostic
data format.

Key Principle:
    Regardless of which exchange the data comes from (Binance, Kraken, KuCoin, etc.),
    markets get normalized into MarketSnapshot at fetch time. Everything downstream
    (reconciler, store, dispatcher) only ever sees these types.

Models:
    - MarketSnapshot: The exchange's current view of one trading pair (ephemeral)
    - MarketRecord: Durable knowledge of one market, keyed by (id, exchange)
    - RunContext: Immutable per-cycle flags (seed run)
    - TransitionEvent: A detected Listed / BecameTrading change
    - DeliveryOutcome: Result of one delivery attempt
    - ExchangeReport: Per-exchange summary of one cycle
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================
# Market Snapshot Schema
# ============================================

class MarketSnapshot(BaseModel):
    """
    One trading pair as currently reported by an exchange.

    Built fully at fetch time (exchange name included) and never mutated.

    Attributes:
        id: Exchange-specific market id (e.g., "BTCUSDT", "XXBTZUSD")
        exchange: Source exchange identifier (lowercase)
        symbol: Unified symbol (e.g., "BTC/USDT")
        base: Base currency (e.g., "BTC")
        quote: Quote currency (e.g., "USDT")
        active: Raw trading flag reported by the exchange, None if unknown
        metadata: Remaining exchange-provided attributes (type, precision, limits)

    Example:
        >>> snapshot = MarketSnapshot(
        ...     id="BTCUSDT",
        ...     exchange="binance",
        ...     symbol="BTC/USDT",
        ...     base="BTC",
        ...     quote="USDT",
        ...     active=True,
        ... )
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Exchange-specific market id")
    exchange: str = Field(..., min_length=1, description="Source exchange identifier (lowercase)")
    symbol: str = Field(default="", description="Unified symbol, e.g. BTC/USDT")
    base: str = Field(..., description="Base currency")
    quote: str = Field(..., description="Quote currency")
    active: Optional[bool] = Field(default=None, description="Exchange-reported trading flag")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra market attributes")

    @field_validator("exchange")
    @classmethod
    def validate_exchange(cls, v: str) -> str:
        """Ensure exchange is lowercase"""
        return v.lower()

    @property
    def key(self) -> tuple:
        """Store key of this market."""
        return (self.id, self.exchange)


# ============================================
# Persisted Market Record Schema
# ============================================

class MarketRecord(BaseModel):
    """
    Durable belief about one market's listing and trading status.

    Key = (id, exchange). Created on first observation, updated on every
    subsequent observation, never deleted.

    Notes:
        - is_trading is monotonic: once True it stays True
        - first_seen_at is set once, last_seen_at moves every cycle
    """

    id: str = Field(..., description="Exchange-specific market id")
    exchange: str = Field(..., description="Source exchange identifier")
    symbol: str = Field(default="", description="Unified symbol")
    base: str = Field(default="", description="Base currency")
    quote: str = Field(default="", description="Quote currency")
    is_trading: bool = Field(default=False, description="Market is actively tradable")
    first_seen_at: datetime = Field(..., description="First observation time (UTC)")
    last_seen_at: datetime = Field(..., description="Latest observation time (UTC)")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Latest market attributes")

    @property
    def key(self) -> tuple:
        """Store key of this record."""
        return (self.id, self.exchange)


# ============================================
# Run Context
# ============================================

class RunContext(BaseModel):
    """
    Immutable flags for one cycle.

    Attributes:
        is_seed_run: True only for the first cycle when the store was empty at
                     startup. Records are persisted but no notification fires.
        cycle: 1-based cycle number, used for log correlation
    """

    model_config = ConfigDict(frozen=True)

    is_seed_run: bool = False
    cycle: int = 1


# ============================================
# Transition Event Schema
# ============================================

class TransitionKind(str, Enum):
    """Kinds of market state change worth alerting on."""

    LISTED = "listed"
    BECAME_TRADING = "trading"


class TransitionEvent(BaseModel):
    """
    A detected state change for one market in one cycle.

    Example:
        >>> event = TransitionEvent(kind=TransitionKind.LISTED, market=snapshot)
        >>> event.message
        'BTC is listed on binance'
    """

    model_config = ConfigDict(frozen=True)

    kind: TransitionKind
    market: MarketSnapshot

    @property
    def message(self) -> str:
        """Human-readable alert text."""
        return f"{self.market.base} is {self.kind.value} on {self.market.exchange}"


# ============================================
# Delivery Outcome Schema
# ============================================

class DeliveryOutcome(BaseModel):
    """Result of one delivery attempt to one recipient over one channel."""

    channel: str
    recipient: str
    success: bool
    error: Optional[str] = None


# ============================================
# Exchange Report Schema
# ============================================

class ExchangeReport(BaseModel):
    """
    Per-exchange summary of one cycle, used for logging.

    Attributes:
        exchange: Exchange identifier
        markets: Snapshots returned by the exchange
        persisted: Records written to the store
        listed: Listed events produced
        became_trading: BecameTrading events produced
        failed: Markets skipped because of store errors
    """

    exchange: str
    markets: int = 0
    persisted: int = 0
    listed: int = 0
    became_trading: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"{self.exchange}: markets={self.markets} persisted={self.persisted} "
            f"listed={self.listed} trading={self.became_trading} failed={self.failed}"
        )
