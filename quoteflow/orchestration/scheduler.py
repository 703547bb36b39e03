"""Scheduler for periodic price refreshes."""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Set, Tuple

from ..data.registry import ProviderRegistry
from ..data.service import CachedFinanceService
from ..domain.instrument import CASH_PRICE, Instrument
from ..domain.market_clock import MarketClock
from ..persistence.instruments import InstrumentRepository
from ..utils import get_logger, log_async_performance
from .notifications import NotificationGate, PriceChange


logger = get_logger(__name__)

FALLBACK_DELAY = timedelta(minutes=5)


@dataclass
class CycleReport:
    """Outcome of one refresh cycle."""
    started_at: datetime
    updated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.failed)


class RefreshScheduler:
    """Refreshes tracked instrument prices while the market is open.

    The loop runs one cycle immediately on start, then sleeps for whatever
    the market clock says and refreshes again if the session is open.
    Cycles run as separate tasks; a cycle that starts while another is
    still in flight is skipped.
    """

    def __init__(
        self,
        repository: InstrumentRepository,
        registry: ProviderRegistry,
        clock: Optional[MarketClock] = None,
        gate: Optional[NotificationGate] = None,
    ):
        """Initialize scheduler.

        Args:
            repository: Tracked instruments
            registry: Provider registry; cycles use its current default source
            clock: Market session clock
            gate: Notification gate, or None to disable notifications
        """
        self.repository = repository
        self.registry = registry
        self.clock = clock or MarketClock()
        self.gate = gate

        self.running = False
        self.is_updating = False
        self.last_report: Optional[CycleReport] = None

        self._stop_event: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()

    async def start(self):
        """Start the refresh loop."""
        if self.running:
            logger.warning("Refresh scheduler already running")
            return

        self.running = True
        self._stop_event = asyncio.Event()
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info("Refresh scheduler started")

    async def stop(self):
        """Stop the loop; in-flight cycles are left to finish."""
        if not self.running:
            return

        self.running = False
        self._stop_event.set()
        if self._loop_task:
            await self._loop_task
            self._loop_task = None
        logger.info("Refresh scheduler stopped")

    async def wait_idle(self):
        """Wait for every in-flight refresh cycle to finish."""
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    def trigger_cycle(self) -> asyncio.Task:
        """Start a refresh cycle in the background."""
        task = asyncio.create_task(self.refresh_prices())
        self._cycles.add(task)
        task.add_done_callback(self._cycle_done)
        return task

    def _cycle_done(self, task: asyncio.Task):
        self._cycles.discard(task)
        if not task.cancelled() and task.exception() is not None:
            # Already logged by the performance decorator
            logger.debug(f"Refresh cycle ended with error: {task.exception()}")

    async def _run_loop(self):
        self.trigger_cycle()

        while self.running:
            try:
                delay = self.clock.next_update_interval()
            except Exception as e:
                logger.error(f"Failed to compute next update interval: {e}")
                delay = FALLBACK_DELAY

            logger.debug(f"Next refresh check in {delay}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay.total_seconds())
                break
            except asyncio.TimeoutError:
                pass

            try:
                if self.clock.is_open():
                    self.trigger_cycle()
                else:
                    logger.debug(f"Market closed ({self.clock.session_state()}), skipping refresh")
            except Exception as e:
                logger.error(f"Error in refresh loop: {e}")

    @log_async_performance()
    async def refresh_prices(self) -> bool:
        """Run one refresh cycle.

        Returns:
            False if skipped because another cycle is in progress
        """
        if self.is_updating:
            logger.info("Price update already in progress, skipping")
            return False

        self.is_updating = True
        try:
            report = CycleReport(started_at=self.clock.now())
            instruments = await self.repository.list_tracked()

            service = None
            if any(not i.is_cash for i in instruments):
                service = self.registry.get()

            outcomes = await asyncio.gather(
                *(self._refresh_one(instrument, service) for instrument in instruments)
            )
            for instrument, (ok, notified) in zip(instruments, outcomes):
                (report.updated if ok else report.failed).append(instrument.id)
                if notified:
                    report.notified.append(instrument.id)

            self.last_report = report
            logger.info(
                f"Refresh cycle complete: {len(report.updated)} updated, "
                f"{len(report.failed)} failed, {len(report.notified)} notified"
            )
            return True
        finally:
            self.is_updating = False

    async def _refresh_one(
        self, instrument: Instrument, service: Optional[CachedFinanceService]
    ) -> Tuple[bool, bool]:
        old_price = instrument.current_price
        log = logger.bind(source=service.source.value) if service else logger
        try:
            if instrument.is_cash:
                new_price, stamp = CASH_PRICE, self.clock.now()
            else:
                # A cached snapshot keeps the time it was quoted
                price_data = await service.get_price_data(instrument.code)
                new_price, stamp = price_data.price, price_data.timestamp

            await self.repository.update(
                instrument.id, current_price=new_price, last_update=stamp
            )
        except Exception as e:
            log.error(f"Failed to update price for {instrument.code}: {e}")
            return False, False

        if instrument.is_cash or not old_price or old_price == new_price or self.gate is None:
            return True, False

        notified = await self.gate.maybe_notify(
            PriceChange.between(instrument, old_price, new_price)
        )
        return True, notified
