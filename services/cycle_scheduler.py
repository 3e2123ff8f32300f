"""
Cycle Scheduler

Drives the perpetual polling loop: one cycle processes every enabled exchange
in configured order, then the scheduler sleeps a fixed interval (measured from
the end of the cycle) and starts over.

The very first cycle is a seed run when the store was empty at startup: all
markets are recorded but nobody is alerted. Every later cycle alerts.
No error from a single exchange, market or channel stops the loop.
"""

import asyncio
import contextlib
from typing import List, Optional

from core.exchange_interface import ExchangeFetchError, ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.logging import get_logger
from core.schemas import ExchangeReport, RunContext
from services.exchange_processor import ExchangeProcessor
from storage.market_store import MarketStore


class CycleScheduler:
    """
    Background service running reconciliation cycles forever.

    Example:
        >>> scheduler = CycleScheduler(manager, processor, store, interval_seconds=60)
        >>> await scheduler.run()          # never returns
        >>>
        >>> # or as a background task
        >>> await scheduler.start()
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        manager: ExchangeManager,
        processor: ExchangeProcessor,
        store: MarketStore,
        interval_seconds: float = 60,
        exchange_concurrency: int = 1,
    ) -> None:
        self._logger = get_logger(__name__)
        self.manager = manager
        self.processor = processor
        self.store = store
        self.interval_seconds = interval_seconds
        self.exchange_concurrency = max(1, exchange_concurrency)
        self.is_seed_run: Optional[bool] = None
        self.cycles_completed = 0
        self._task: Optional[asyncio.Task] = None

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._logger.info("Starting cycle scheduler...")
        self._task = asyncio.create_task(self.run(), name="cycle_scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._logger.info("Stopping cycle scheduler...")
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    # ============================================
    # Core Loop
    # ============================================

    async def determine_seed_run(self) -> bool:
        """
        Check the store once: an empty store makes the first cycle a seed run.

        Raises:
            StoreError: If the store cannot be counted (startup failure)
        """
        count = await self.store.count()
        seed = count == 0
        if seed:
            self._logger.info("Initiating first run. Alerts will not fire!")
        else:
            self._logger.info(f"Store holds {count} markets; alerts are live")
        return seed

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Run cycles forever.

        Args:
            max_cycles: Stop after this many cycles (None = never stop)
        """
        if self.is_seed_run is None:
            self.is_seed_run = await self.determine_seed_run()

        while max_cycles is None or self.cycles_completed < max_cycles:
            ctx = RunContext(is_seed_run=self.is_seed_run, cycle=self.cycles_completed + 1)
            started = asyncio.get_running_loop().time()

            try:
                await self.run_cycle(ctx)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error(f"Cycle {ctx.cycle} failed: {e}", exc_info=True)

            self.cycles_completed += 1
            self.is_seed_run = False

            elapsed = asyncio.get_running_loop().time() - started
            self._logger.info(f"Cycle {ctx.cycle} finished in {elapsed:.1f}s")

            if max_cycles is not None and self.cycles_completed >= max_cycles:
                break

            self._logger.info(f"Waiting {self.interval_seconds}s to run again...")
            await asyncio.sleep(self.interval_seconds)

    async def run_cycle(self, ctx: RunContext) -> List[ExchangeReport]:
        """
        Process every enabled exchange once.

        Returns:
            Reports of the exchanges that completed, in configured order
        """
        exchanges = self.manager.enabled_exchanges()

        if self.exchange_concurrency == 1:
            results = [await self._process_exchange(exchange, ctx) for exchange in exchanges]
        else:
            semaphore = asyncio.Semaphore(self.exchange_concurrency)

            async def bounded(exchange: ExchangeInterface) -> Optional[ExchangeReport]:
                async with semaphore:
                    return await self._process_exchange(exchange, ctx)

            results = await asyncio.gather(*(bounded(exchange) for exchange in exchanges))

        return [report for report in results if report is not None]

    async def _process_exchange(self, exchange: ExchangeInterface, ctx: RunContext) -> Optional[ExchangeReport]:
        try:
            return await self.processor.process(exchange, ctx)
        except asyncio.CancelledError:
            raise
        except ExchangeFetchError as e:
            self._logger.error(f"Skipping exchange {exchange.name} this cycle: {e}")
        except Exception as e:
            self._logger.error(f"Unexpected error processing exchange {exchange.name}: {e}", exc_info=True)
        return None
