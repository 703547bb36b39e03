"""
Market session clock
Decides whether the exchange is trading and how long to wait before the next refresh
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

import pytz

from ..config import MarketConfig


class MarketClock:
    """Trading session rules for Shanghai/Shenzhen style markets.

    Sessions run Monday-Friday on two half-open windows, morning
    [open, lunch start) and afternoon [lunch end, close). Everything is
    evaluated in the market timezone; ``now`` may be injected for tests.
    """

    def __init__(
        self,
        config: Optional[MarketConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or MarketConfig()
        self.tz = pytz.timezone(self.config.timezone)
        self._now = now

        self.open_time = self.config.get_open_time()
        self.close_time = self.config.get_close_time()
        self.lunch_start = self.config.get_lunch_start()
        self.lunch_end = self.config.get_lunch_end()
        self.poll_interval = timedelta(minutes=self.config.poll_interval_minutes)

    def now(self) -> datetime:
        """Current time in the market timezone"""
        current = self._now() if self._now else datetime.now(self.tz)
        if current.tzinfo is None:
            return self.tz.localize(current)
        return current.astimezone(self.tz)

    def is_open(self) -> bool:
        now = self.now()
        if now.weekday() >= 5:
            return False

        current = now.time()
        if self.open_time <= current < self.lunch_start:
            return True
        return self.lunch_end <= current < self.close_time

    def next_update_interval(self) -> timedelta:
        """How long to sleep before the next refresh attempt"""
        now = self.now()
        weekday = now.weekday()

        if weekday == 6:  # Sunday
            return self._until_days_ahead(now, 1, self.open_time)
        if weekday == 5:  # Saturday
            return self._until_days_ahead(now, 2, self.open_time)

        current = now.time()
        if current >= self.close_time:
            return self._until_days_ahead(now, 1, self.open_time)
        if self.lunch_start <= current < self.lunch_end:
            return self._until_time(now, self.lunch_end)
        if current < self.open_time:
            return self._until_time(now, self.open_time)

        return self.poll_interval

    def session_state(self) -> str:
        """Human readable session label"""
        now = self.now()
        if now.weekday() >= 5:
            return "weekend"

        current = now.time()
        if current < self.open_time:
            return "pre_open"
        if current < self.lunch_start:
            return "morning"
        if current < self.lunch_end:
            return "lunch"
        if current < self.close_time:
            return "afternoon"
        return "closed"

    def _at(self, day: date, clock: time) -> datetime:
        return self.tz.localize(datetime.combine(day, clock))

    def _until_time(self, now: datetime, clock: time) -> timedelta:
        target = self._at(now.date(), clock)
        if target <= now:
            target = self._at(now.date() + timedelta(days=1), clock)
        return target - now

    def _until_days_ahead(self, now: datetime, days: int, clock: time) -> timedelta:
        return self._at(now.date() + timedelta(days=days), clock) - now
