"""Unit tests for the TTL cache and the cached provider adapter."""

import pytest
from unittest.mock import AsyncMock

from quoteflow.data.base import ProviderError, SourceName
from quoteflow.data.cache import CacheEntry, TTLCache
from quoteflow.data.service import CachedFinanceService


class TestTTLCache:
    """Test TTL cache expiry and bookkeeping."""

    def test_entry_expiry_boundary(self):
        """An entry is expired once its age reaches the TTL."""
        entry = CacheEntry(value="x", fetched_at=100.0)

        assert not entry.is_expired(399.9, 300)
        assert entry.is_expired(400.0, 300)

    def test_get_set(self, fake_clock):
        cache = TTLCache(ttl_seconds=60, clock=fake_clock)
        cache.set("600519", 1700.0)

        assert cache.get("600519") == 1700.0
        assert "600519" in cache
        assert cache.stats()["hits"] == 1

    def test_expired_entries_are_evicted(self, fake_clock):
        cache = TTLCache(ttl_seconds=60, clock=fake_clock)
        cache.set("600519", 1700.0)

        fake_clock.advance(60)

        assert "600519" not in cache
        assert cache.get("600519") is None
        assert len(cache) == 0
        assert cache.stats()["misses"] == 1

    def test_clear(self, fake_clock):
        cache = TTLCache(clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert len(cache) == 0


class TestCachedFinanceService:
    """Test the cached adapter in front of one provider."""

    @pytest.mark.asyncio
    async def test_price_lookups_within_ttl_hit_provider_once(self, fake_clock, stub_provider_cls):
        """Two lookups inside the TTL trigger a single provider call."""
        provider = stub_provider_cls(prices={"600519": 1700.0})
        service = CachedFinanceService(provider, cache_timeout=300, clock=fake_clock)

        first = await service.get_price_data("600519")
        fake_clock.advance(299)
        second = await service.get_price_data("600519")

        assert first is second
        assert provider.calls == ["price:600519"]

    @pytest.mark.asyncio
    async def test_lookup_after_expiry_calls_provider_again(self, fake_clock, stub_provider_cls):
        provider = stub_provider_cls(prices={"600519": 1700.0})
        service = CachedFinanceService(provider, cache_timeout=300, clock=fake_clock)

        await service.get_price_data("600519")
        fake_clock.advance(301)
        provider.prices["600519"] = 1710.0
        refreshed = await service.get_price_data("600519")

        assert refreshed.price == 1710.0
        assert provider.calls == ["price:600519", "price:600519"]

    @pytest.mark.asyncio
    async def test_info_cache_is_separate_from_price_cache(self, fake_clock, stub_provider_cls):
        provider = stub_provider_cls()
        service = CachedFinanceService(provider, clock=fake_clock)

        await service.get_security_info("000001")
        await service.get_security_info("000001")
        await service.get_price_data("000001")

        assert provider.calls == ["info:000001", "price:000001"]

    @pytest.mark.asyncio
    async def test_search_is_never_cached(self, fake_clock, stub_provider_cls):
        provider = stub_provider_cls()
        service = CachedFinanceService(provider, clock=fake_clock)

        await service.search("茅台")
        await service.search("茅台")

        assert provider.calls == ["search:茅台", "search:茅台"]

    @pytest.mark.asyncio
    async def test_errors_propagate_and_are_not_cached(self, fake_clock):
        provider = AsyncMock()
        provider.source = SourceName.SINA
        provider.fetch_price_data.side_effect = ProviderError("sina", "boom")
        service = CachedFinanceService(provider, clock=fake_clock)

        with pytest.raises(ProviderError):
            await service.get_price_data("600519")

        assert len(service.price_cache) == 0

    @pytest.mark.asyncio
    async def test_clear_cache_and_stats(self, fake_clock, stub_provider_cls):
        provider = stub_provider_cls()
        service = CachedFinanceService(provider, clock=fake_clock)

        await service.get_price_data("600519")
        stats = service.cache_stats()
        service.clear_cache()
        await service.get_price_data("600519")

        assert stats["source"] == "eastmoney"
        assert stats["price"]["entries"] == 1
        assert len(provider.calls) == 2
