"""Price change notifications."""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..domain.instrument import Instrument
from ..utils import get_logger


logger = get_logger(__name__)

DEFAULT_THRESHOLD_PCT = 1.0
DEFAULT_DEDUP_INTERVAL = 30 * 60
DEFAULT_PRIORITY = 2

RISE_LABEL = "上涨"
FALL_LABEL = "下跌"


@dataclass
class PriceChange:
    """A refreshed price that differs from the stored one."""
    instrument: Instrument
    old_price: float
    new_price: float
    change_percent: float

    @classmethod
    def between(cls, instrument: Instrument, old_price: float, new_price: float) -> "PriceChange":
        return cls(
            instrument=instrument,
            old_price=old_price,
            new_price=new_price,
            change_percent=(new_price - old_price) / old_price * 100,
        )


class NotificationSink(ABC):
    """Where user-visible notifications go."""

    @abstractmethod
    async def deliver(self, title: str, message: str, priority: int) -> None:
        pass


class LogNotificationSink(NotificationSink):
    """Writes notifications to the application log."""

    async def deliver(self, title: str, message: str, priority: int) -> None:
        logger.info(f"[notify p{priority}] {title}: {message.replace(chr(10), ' | ')}")


class NotificationGate:
    """Decides whether a price change is worth telling the user about.

    Changes below the threshold are dropped. Each instrument is notified at
    most once per dedup interval, measured from the last successful
    delivery; a zero interval disables suppression.
    """

    def __init__(
        self,
        sink: NotificationSink,
        threshold_pct: float = DEFAULT_THRESHOLD_PCT,
        dedup_interval: float = DEFAULT_DEDUP_INTERVAL,
        priority: int = DEFAULT_PRIORITY,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize gate.

        Args:
            sink: Delivery target
            threshold_pct: Minimum absolute change in percent
            dedup_interval: Per-instrument suppression window in seconds
            priority: Priority passed to the sink
            clock: Time source in epoch seconds
        """
        self.sink = sink
        self.threshold_pct = threshold_pct
        self.dedup_interval = dedup_interval
        self.priority = priority
        self.clock = clock
        self._last_sent: Dict[str, float] = {}

    @staticmethod
    def format_title(change: PriceChange) -> str:
        return f"{change.instrument.name} ({change.instrument.code})"

    @staticmethod
    def format_message(change: PriceChange) -> str:
        direction = RISE_LABEL if change.change_percent > 0 else FALL_LABEL
        return (
            f"{direction}{abs(change.change_percent):.2f}%\n"
            f"{change.old_price:.2f} → {change.new_price:.2f}"
        )

    def is_suppressed(self, instrument_id: str) -> bool:
        if self.dedup_interval <= 0:
            return False
        last = self._last_sent.get(instrument_id)
        return last is not None and self.clock() - last < self.dedup_interval

    def last_sent(self, instrument_id: str) -> Optional[float]:
        return self._last_sent.get(instrument_id)

    async def maybe_notify(self, change: PriceChange) -> bool:
        """Deliver a notification for a significant change.

        Returns:
            True if a notification was delivered
        """
        if abs(change.change_percent) < self.threshold_pct:
            return False

        instrument_id = change.instrument.id
        if self.is_suppressed(instrument_id):
            logger.debug(f"Notification for {change.instrument.code} suppressed (recently sent)")
            return False

        try:
            await self.sink.deliver(
                self.format_title(change), self.format_message(change), self.priority
            )
        except Exception as e:
            logger.error(f"Failed to deliver notification for {change.instrument.code}: {e}")
            return False

        self._last_sent[instrument_id] = self.clock()
        return True
