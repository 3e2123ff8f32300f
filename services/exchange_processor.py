"""
Exchange Processor

Runs one exchange through the pipeline for one cycle:

    load_markets -> (per market, in order) find_one -> reconcile -> upsert -> notify

Markets are handled strictly one after another so writes for the same
exchange never race. A fetch failure aborts the exchange before anything is
written; a store failure only skips the market it happened on.
"""

from core.exchange_interface import ExchangeInterface
from core.logging import get_logger, log_transition
from core.schemas import ExchangeReport, MarketSnapshot, RunContext, TransitionKind
from services.notification_dispatcher import NotificationDispatcher
from services.reconciler import MarketReconciler
from storage.market_store import MarketStore, StoreError


class ExchangeProcessor:
    """
    Sequences snapshot -> reconcile -> persist -> notify for one exchange.

    Example:
        >>> processor = ExchangeProcessor(store, MarketReconciler(), dispatcher)
        >>> report = await processor.process(exchange, RunContext(is_seed_run=False))
    """

    def __init__(
        self,
        store: MarketStore,
        reconciler: MarketReconciler,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.store = store
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self._logger = get_logger(__name__)

    async def process(self, exchange: ExchangeInterface, ctx: RunContext) -> ExchangeReport:
        """
        Process every market of one exchange.

        Raises:
            ExchangeFetchError: If the market list could not be fetched
                                (nothing has been persisted in that case)
        """
        self._logger.info(f"Processing exchange {exchange.name}")
        snapshots = await exchange.load_markets()

        report = ExchangeReport(exchange=exchange.name, markets=len(snapshots))
        for snapshot in snapshots:
            await self._process_market(snapshot, ctx, report)

        self._logger.info(f"Finished exchange {report}")
        return report

    async def _process_market(self, snapshot: MarketSnapshot, ctx: RunContext, report: ExchangeReport) -> None:
        try:
            prior = await self.store.find_one(snapshot.id, snapshot.exchange)
            record, event = self.reconciler.reconcile(snapshot, prior, ctx)
            await self.store.upsert(record)
        except StoreError as e:
            report.failed += 1
            self._logger.error(f"Store error for {snapshot.exchange} market {snapshot.id}: {e}")
            return

        report.persisted += 1
        if event is None:
            return

        if event.kind is TransitionKind.LISTED:
            report.listed += 1
        else:
            report.became_trading += 1

        log_transition(event)
        await self.dispatcher.notify(event)
