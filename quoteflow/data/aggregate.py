"""
Multi-source lookups
Queries several sources in order and merges search results
"""

import asyncio
from typing import Dict, List, Optional, Sequence

from ..utils import get_logger
from .base import AllSourcesFailedError, PriceData, SearchResult, SecurityInfo, SourceName
from .registry import ProviderRegistry
from .service import CachedFinanceService

logger = get_logger(__name__)

DEFAULT_ORDER = (SourceName.THS, SourceName.EASTMONEY)


class MultiSourceFinanceService:
    """
    First-success lookups over an ordered list of cached services
    Search fans out to every service and keeps the first hit per code
    """

    def __init__(self, registry: ProviderRegistry, sources: Optional[Sequence[SourceName]] = None):
        self.registry = registry
        self.sources = [
            name for name in (sources or DEFAULT_ORDER) if name is not SourceName.FAILOVER
        ]

    @property
    def services(self) -> List[CachedFinanceService]:
        return [self.registry.get(name) for name in self.sources]

    async def get_security_info(self, code: str) -> SecurityInfo:
        errors: Dict[str, Exception] = {}
        for service in self.services:
            try:
                return await service.get_security_info(code)
            except Exception as e:
                logger.warning(f"Failed to get security info from {service.source.value}: {e}")
                errors[service.source.value] = e
        raise AllSourcesFailedError(errors)

    async def get_price_data(self, code: str) -> PriceData:
        errors: Dict[str, Exception] = {}
        for service in self.services:
            try:
                return await service.get_price_data(code)
            except Exception as e:
                logger.warning(f"Failed to get price data from {service.source.value}: {e}")
                errors[service.source.value] = e
        raise AllSourcesFailedError(errors)

    async def search(self, query: str) -> List[SearchResult]:
        services = self.services
        outcomes = await asyncio.gather(
            *(service.search(query) for service in services),
            return_exceptions=True,
        )

        merged: Dict[str, SearchResult] = {}
        for service, outcome in zip(services, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Search failed on {service.source.value}: {outcome}")
                continue
            for result in outcome:
                merged.setdefault(result.code, result)

        return list(merged.values())
