"""
Failover coordinator
Routes lookups across several sources and switches away from a source after repeated failures
"""

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..config import ProviderConfig
from ..utils import get_logger
from .base import (
    AllSourcesFailedError,
    FinanceProvider,
    PriceData,
    SearchResult,
    SecurityInfo,
    SourceName,
)

if TYPE_CHECKING:
    from .registry import ProviderRegistry
    from .service import CachedFinanceService

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SOURCES = (SourceName.EASTMONEY, SourceName.SINA)


@dataclass
class SourceFailureState:
    """Consecutive failure bookkeeping for one source"""
    consecutive_failures: int = 0
    reset_deadline: Optional[float] = None

    def clear(self):
        self.consecutive_failures = 0
        self.reset_deadline = None


class FailoverProvider(FinanceProvider):
    """
    FinanceProvider that tries each configured source in turn

    Every failed attempt moves on to the next source so that one call samples
    several sources. A source that reaches its ``max_failures`` threshold is
    switched away from and its counter cleared. When every source fails the
    current position is restored and AllSourcesFailedError is raised.
    """

    source = SourceName.FAILOVER

    def __init__(
        self,
        registry: "ProviderRegistry",
        config: Optional[ProviderConfig] = None,
        sources: Optional[Sequence[SourceName]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.config = config or ProviderConfig()
        self.clock = clock
        self.sources: List[SourceName] = list(sources) if sources else self._configured_sources()
        self.current_index = 0
        self._failures: Dict[SourceName, SourceFailureState] = {
            name: SourceFailureState() for name in self.sources
        }

    def _configured_sources(self) -> List[SourceName]:
        sources = []
        for raw in self.config.failover_sources:
            name = SourceName.lookup(raw)
            if name is None or name is SourceName.FAILOVER:
                logger.warning(f"Ignoring invalid failover source {raw!r}")
                continue
            if not self.config.source_config(name.value).enabled:
                logger.info(f"Failover source {name.value} is disabled")
                continue
            if name not in sources:
                sources.append(name)

        if not sources:
            logger.warning("No enabled failover sources configured, using defaults")
            sources = list(DEFAULT_SOURCES)
        return sources

    @property
    def current_source(self) -> SourceName:
        return self.sources[self.current_index]

    async def fetch_security_info(self, code: str) -> SecurityInfo:
        return await self._with_failover(lambda service: service.get_security_info(code))

    async def fetch_price_data(self, code: str) -> PriceData:
        return await self._with_failover(lambda service: service.get_price_data(code))

    async def search_securities(self, query: str) -> List[SearchResult]:
        return await self._with_failover(lambda service: service.search(query))

    async def _with_failover(
        self, operation: Callable[["CachedFinanceService"], Awaitable[T]]
    ) -> T:
        initial_index = self.current_index
        max_attempts = len(self.sources)
        errors: Dict[str, Exception] = {}

        for attempt in range(max_attempts):
            source = self.current_source
            service = self.registry.get(source)

            try:
                result = await operation(service)
            except Exception as e:
                logger.bind(source=source.value).warning(f"Lookup failed: {e}")
                errors[source.value] = e
                switched = self._record_failure(source)
                if not switched and attempt < max_attempts - 1:
                    self._switch_to_next_source()
                continue

            self._record_success(source)
            return result

        self.current_index = initial_index
        raise AllSourcesFailedError(errors)

    def _switch_to_next_source(self):
        self.current_index = (self.current_index + 1) % len(self.sources)
        logger.info(f"Switching to data source: {self.current_source.value}")

    def failure_state(self, source: SourceName) -> SourceFailureState:
        """Failure state with any elapsed reset deadline applied"""
        state = self._failures.setdefault(source, SourceFailureState())
        if state.reset_deadline is not None and self.clock() >= state.reset_deadline:
            state.clear()
        return state

    def _record_failure(self, source: SourceName) -> bool:
        """Count a failure; returns True when the threshold forced a switch"""
        source_config = self.config.source_config(source.value)
        state = self.failure_state(source)
        state.consecutive_failures += 1
        state.reset_deadline = self.clock() + source_config.failure_reset_interval

        if state.consecutive_failures >= source_config.max_failures:
            logger.warning(
                f"{source.value} failed {state.consecutive_failures} times in a row, switching source"
            )
            self._switch_to_next_source()
            state.clear()
            return True
        return False

    def _record_success(self, source: SourceName):
        self.failure_state(source).clear()

    def status(self) -> Dict[str, Any]:
        return {
            'current_source': self.current_source.value,
            'sources': [name.value for name in self.sources],
            'failures': {
                name.value: self.failure_state(name).consecutive_failures
                for name in self.sources
            },
        }
