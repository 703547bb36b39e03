"""
Provider registry
One cached service per source, created on first use and shared by every caller
"""

import time
from typing import Callable, Dict, Mapping, Optional, Union

from ..config import ProviderConfig
from ..utils import get_logger
from .base import FinanceProvider, SourceName
from .eastmoney import EastMoneyFinanceService
from .failover import FailoverProvider
from .service import CachedFinanceService
from .sina import SinaFinanceService
from .ths import ThsFinanceService

logger = get_logger(__name__)

ProviderFactory = Callable[[], FinanceProvider]

FALLBACK_SOURCE = SourceName.EASTMONEY


class ProviderRegistry:
    """
    Maps source names to memoized CachedFinanceService instances
    Unknown names resolve to the default source instead of failing
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        factories: Optional[Mapping[SourceName, ProviderFactory]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or ProviderConfig()
        self.clock = clock
        self._factories: Dict[SourceName, ProviderFactory] = (
            dict(factories) if factories is not None else self._default_factories()
        )
        self._instances: Dict[SourceName, CachedFinanceService] = {}
        self._default = FALLBACK_SOURCE
        self.set_default_source(self.config.default_source)

    def _default_factories(self) -> Dict[SourceName, ProviderFactory]:
        timeout = self.config.request_timeout_seconds
        return {
            SourceName.SINA: lambda: SinaFinanceService(timeout=timeout),
            SourceName.EASTMONEY: lambda: EastMoneyFinanceService(timeout=timeout),
            SourceName.THS: lambda: ThsFinanceService(timeout=timeout),
            SourceName.FAILOVER: lambda: FailoverProvider(self, self.config, clock=self.clock),
        }

    @property
    def default_source(self) -> SourceName:
        return self._default

    def set_default_source(self, source: Union[SourceName, str]):
        resolved = SourceName.lookup(source)
        if resolved is None or resolved not in self._factories:
            fallback = FALLBACK_SOURCE if FALLBACK_SOURCE in self._factories else next(iter(self._factories))
            logger.warning(f"Unknown default source {source!r}, using {fallback.value}")
            resolved = fallback
        self._default = resolved

    def resolve(self, source: Union[SourceName, str, None] = None) -> SourceName:
        if source is None:
            return self._default

        resolved = SourceName.lookup(source)
        if resolved is None or resolved not in self._factories:
            logger.warning(f"Unknown data source {source!r}, falling back to {self._default.value}")
            return self._default
        return resolved

    def get(self, source: Union[SourceName, str, None] = None) -> CachedFinanceService:
        """Get the shared service for a source (the default when omitted)"""
        name = self.resolve(source)

        if name not in self._instances:
            provider = self._factories[name]()
            self._instances[name] = CachedFinanceService(
                provider,
                cache_timeout=self.config.cache_ttl_seconds,
                clock=self.clock,
            )
            logger.debug(f"Created {name.value} service")

        return self._instances[name]

    def active(self) -> Dict[SourceName, CachedFinanceService]:
        return dict(self._instances)

    async def close(self):
        """Close network resources held by every created service"""
        for name, service in list(self._instances.items()):
            try:
                await service.close()
            except Exception as e:
                logger.error(f"Error closing {name.value} service: {e}")
        self._instances.clear()
