"""Shared fixtures for QuoteFlow tests."""

from datetime import datetime
from typing import Dict, List, Optional

import pytest

from quoteflow.config import reset_config
from quoteflow.data.base import (
    FinanceProvider,
    PriceData,
    ProviderError,
    SearchResult,
    SecurityInfo,
    SourceName,
)
from quoteflow.domain.instrument import SecurityType


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class StubProvider(FinanceProvider):
    """In-memory provider that records calls and can be told to fail."""

    def __init__(
        self,
        source: SourceName = SourceName.EASTMONEY,
        prices: Optional[Dict[str, float]] = None,
        fail: bool = False,
    ):
        self.source = source
        self.prices = dict(prices or {})
        self.fail = fail
        self.calls: List[str] = []
        self.closed = False

    def _check(self, what: str):
        self.calls.append(what)
        if self.fail:
            raise ProviderError(self.source.value, f"{what} unavailable")

    async def fetch_security_info(self, code: str) -> SecurityInfo:
        self._check(f"info:{code}")
        return SecurityInfo(
            code=code,
            name=f"{self.source.value}-{code}",
            kind=SecurityType.STOCK,
            current_price=self.prices.get(code, 10.0),
        )

    async def fetch_price_data(self, code: str) -> PriceData:
        self._check(f"price:{code}")
        price = self.prices.get(code, 10.0)
        return PriceData(
            code=code,
            price=price,
            change=0.0,
            change_percent=0.0,
            high=price,
            low=price,
            open=price,
            last_close=price,
            volume=100,
            amount=price * 100,
            timestamp=datetime(2024, 1, 3, 10, 0),
        )

    async def search_securities(self, query: str) -> List[SearchResult]:
        self._check(f"search:{query}")
        return [SearchResult(code=query, name=self.source.value, kind=SecurityType.STOCK, market="sh")]

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def fresh_config():
    """Never leak the configuration singleton between tests"""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def stub_provider_cls():
    return StubProvider
