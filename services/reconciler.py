"""
Market Reconciler

Compares one freshly fetched MarketSnapshot with what the store already knows
about that market and decides the new record plus at most one transition.

State machine (per (id, exchange) key):

    Unknown --first seen, not trading--> Listed
    Unknown --first seen, trading------> Trading   (alerted as Listed)
    Listed  --trading check true-------> Trading   (alerted as BecameTrading)
    Trading --anything-----------------> Trading   (never downgraded)

Unknown is the absence of a record. A seed run persists records but never
emits transitions.
"""

from typing import Callable, Optional, Tuple

from core.logging import get_logger
from core.schemas import MarketRecord, MarketSnapshot, RunContext, TransitionEvent, TransitionKind
from core.utils.time import current_utc_datetime

TradingCheck = Callable[[MarketSnapshot], bool]


# ============================================
# Trading-Status Policies
# ============================================

def always_trading(snapshot: MarketSnapshot) -> bool:
    """
    Default trading check: every listed market counts as trading.

    This is a placeholder policy. Detecting real trading activity (recent
    trades, non-empty order book) is not implemented yet; swap in another
    policy through MarketReconciler(is_currently_trading=...).
    """
    return True


def exchange_active_flag(snapshot: MarketSnapshot) -> bool:
    """Trust the exchange's own `active` flag; unknown counts as trading."""
    return snapshot.active is not False


TRADING_CHECKS = {
    "always": always_trading,
    "active_flag": exchange_active_flag,
}


def get_trading_check(name: str) -> TradingCheck:
    """
    Look up a trading check by its settings name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return TRADING_CHECKS[name]
    except KeyError:
        raise ValueError(
            f"Unknown trading check '{name}'. Available: {', '.join(TRADING_CHECKS)}"
        ) from None


# ============================================
# Reconciler
# ============================================

class MarketReconciler:
    """
    Decides record updates and transitions for single markets.

    Pure in-memory logic: no I/O, no clock other than `now`.

    Example:
        >>> reconciler = MarketReconciler()
        >>> record, event = reconciler.reconcile(snapshot, None, RunContext())
        >>> event.kind
        <TransitionKind.LISTED: 'listed'>
    """

    def __init__(
        self,
        is_currently_trading: TradingCheck = always_trading,
        now: Callable = current_utc_datetime,
    ) -> None:
        self.is_currently_trading = is_currently_trading
        self._now = now
        self._logger = get_logger(__name__)

    def reconcile(
        self,
        snapshot: MarketSnapshot,
        prior: Optional[MarketRecord],
        ctx: RunContext,
    ) -> Tuple[MarketRecord, Optional[TransitionEvent]]:
        """
        Reconcile one snapshot against its stored record.

        Args:
            snapshot: The exchange's current view of the market
            prior: Stored record for snapshot.key, or None if never seen
            ctx: Flags of the current cycle

        Returns:
            (record to persist, transition or None)
        """
        now = self._now()

        if prior is None:
            record = MarketRecord(
                id=snapshot.id,
                exchange=snapshot.exchange,
                symbol=snapshot.symbol,
                base=snapshot.base,
                quote=snapshot.quote,
                is_trading=self.is_currently_trading(snapshot),
                first_seen_at=now,
                last_seen_at=now,
                metadata=snapshot.metadata,
            )
            event = None if ctx.is_seed_run else TransitionEvent(kind=TransitionKind.LISTED, market=snapshot)
            return record, event

        refreshed = prior.model_copy(update={
            "symbol": snapshot.symbol or prior.symbol,
            "base": snapshot.base or prior.base,
            "quote": snapshot.quote or prior.quote,
            "metadata": snapshot.metadata,
            "last_seen_at": now,
        })

        trading_now = self.is_currently_trading(snapshot)

        if not prior.is_trading and trading_now:
            record = refreshed.model_copy(update={"is_trading": True})
            event = None if ctx.is_seed_run else TransitionEvent(
                kind=TransitionKind.BECAME_TRADING, market=snapshot
            )
            return record, event

        if prior.is_trading and not trading_now:
            # Downgrades are ignored; the market stays trading
            self._logger.debug(
                f"{snapshot.exchange} {snapshot.id} reported not trading; keeping is_trading=True"
            )

        return refreshed, None
