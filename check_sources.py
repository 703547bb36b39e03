#!/usr/bin/env python3
"""
Quick live check of the quote sources
Run this to verify the public endpoints still answer and parse
"""

import asyncio

from quoteflow.config import get_config
from quoteflow.data import ProviderRegistry, QuoteFlowError, SourceName
from quoteflow.utils import get_logger

logger = get_logger(__name__)

CODES = ["600519", "000001", "510300", "hk00700"]


async def check_sources():
    """Fetch a few quotes from every source, then through failover"""
    registry = ProviderRegistry(get_config().providers)

    try:
        for source in (SourceName.SINA, SourceName.EASTMONEY, SourceName.THS, SourceName.FAILOVER):
            print(f"\n=== {source.value} ===\n")
            service = registry.get(source)

            for code in CODES:
                try:
                    price = await service.get_price_data(code)
                    print(f"   ✓ {code}: {price.price:.3f} ({price.change_percent:+.2f}%)")
                except QuoteFlowError as e:
                    print(f"   ✗ {code}: {e}")

            try:
                results = await service.search("茅台")
                print(f"   ✓ search: {len(results)} result(s)")
            except QuoteFlowError as e:
                print(f"   ✗ search: {e}")

        failover = registry.get(SourceName.FAILOVER).provider
        print(f"\nFailover status: {failover.status()}")
    finally:
        await registry.close()


if __name__ == "__main__":
    asyncio.run(check_sources())
