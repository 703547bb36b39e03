"""
Data acquisition layer
Quote sources, caching and failover between sources
"""

from .base import (
    SourceName,
    QuoteFlowError,
    ProviderError,
    AllSourcesFailedError,
    SecurityInfo,
    PriceData,
    SearchResult,
    FinanceProvider,
    parse_stock_code,
)

from .cache import CacheEntry, TTLCache
from .service import CachedFinanceService
from .http import HttpFinanceProvider
from .sina import SinaFinanceService
from .eastmoney import EastMoneyFinanceService
from .ths import ThsFinanceService
from .registry import ProviderRegistry
from .failover import FailoverProvider, SourceFailureState
from .aggregate import MultiSourceFinanceService

__all__ = [
    # Base classes
    'SourceName',
    'QuoteFlowError',
    'ProviderError',
    'AllSourcesFailedError',
    'SecurityInfo',
    'PriceData',
    'SearchResult',
    'FinanceProvider',
    'parse_stock_code',

    # Caching
    'CacheEntry',
    'TTLCache',
    'CachedFinanceService',

    # Sources
    'HttpFinanceProvider',
    'SinaFinanceService',
    'EastMoneyFinanceService',
    'ThsFinanceService',

    # Routing
    'ProviderRegistry',
    'FailoverProvider',
    'SourceFailureState',
    'MultiSourceFinanceService',
]
