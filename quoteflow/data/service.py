"""
Cached provider adapter
Puts a TTL cache in front of one concrete quote source
"""

import time
from typing import Any, Callable, Dict, List

from ..utils import get_logger
from .base import FinanceProvider, PriceData, SearchResult, SecurityInfo
from .cache import TTLCache

logger = get_logger(__name__)

DEFAULT_CACHE_TIMEOUT = 5 * 60


class CachedFinanceService:
    """
    Public lookup interface for a single source
    Security info and prices are cached per code; searches always hit the source
    """

    def __init__(
        self,
        provider: FinanceProvider,
        cache_timeout: float = DEFAULT_CACHE_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.info_cache: TTLCache[SecurityInfo] = TTLCache(cache_timeout, clock)
        self.price_cache: TTLCache[PriceData] = TTLCache(cache_timeout, clock)

    @property
    def source(self):
        return self.provider.source

    async def get_security_info(self, code: str) -> SecurityInfo:
        cached = self.info_cache.get(code)
        if cached is not None:
            return cached

        info = await self.provider.fetch_security_info(code)
        self.info_cache.set(code, info)
        return info

    async def get_price_data(self, code: str) -> PriceData:
        cached = self.price_cache.get(code)
        if cached is not None:
            logger.debug(f"Price cache hit for {code} ({self.source.value})")
            return cached

        price = await self.provider.fetch_price_data(code)
        self.price_cache.set(code, price)
        return price

    async def search(self, query: str) -> List[SearchResult]:
        return await self.provider.search_securities(query)

    def clear_cache(self):
        self.info_cache.clear()
        self.price_cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return {
            'source': self.source.value,
            'info': self.info_cache.stats(),
            'price': self.price_cache.stats(),
        }

    async def close(self):
        await self.provider.close()
