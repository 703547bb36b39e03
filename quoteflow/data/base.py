"""
Base classes for quote providers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..domain.instrument import SecurityType


class SourceName(Enum):
    """Available quote sources"""
    SINA = "sina"
    EASTMONEY = "eastmoney"
    THS = "ths"
    FAILOVER = "failover"

    @classmethod
    def lookup(cls, value) -> Optional["SourceName"]:
        """Resolve a name, returning None when it is not a known source"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class QuoteFlowError(Exception):
    """Base error for the data acquisition layer"""


class ProviderError(QuoteFlowError):
    """A single provider call failed (transport or payload format)"""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class AllSourcesFailedError(QuoteFlowError):
    """Every configured source failed for one call"""

    def __init__(self, errors: Dict[str, Exception]):
        self.errors = dict(errors)
        detail = "; ".join(f"{name}: {err}" for name, err in self.errors.items())
        super().__init__(f"All data sources failed ({detail})" if detail else "All data sources failed")


@dataclass
class SecurityInfo:
    """Static description of a security"""
    code: str
    name: str
    kind: SecurityType
    current_price: Optional[float] = None
    last_update: Optional[datetime] = None
    market: Optional[str] = None  # sh, sz or hk
    sector: Optional[str] = None
    industry: Optional[str] = None


@dataclass
class PriceData:
    """Quote snapshot for a single code"""
    code: str
    price: float
    change: float
    change_percent: float
    high: float
    low: float
    open: float
    last_close: float
    volume: int
    amount: float
    timestamp: datetime


@dataclass
class SearchResult:
    """One hit from a security search"""
    code: str
    name: str
    kind: SecurityType
    market: str  # sh, sz, hk or unknown
    sector: Optional[str] = None
    industry: Optional[str] = None


class FinanceProvider(ABC):
    """Capability every quote source implements"""

    source: SourceName

    @abstractmethod
    async def fetch_security_info(self, code: str) -> SecurityInfo:
        """Look up name, kind and classification for a code"""
        pass

    @abstractmethod
    async def fetch_price_data(self, code: str) -> PriceData:
        """Get the latest quote for a code"""
        pass

    @abstractmethod
    async def search_securities(self, query: str) -> List[SearchResult]:
        """Search securities by code, name or pinyin"""
        pass

    async def close(self):
        """Release any network resources"""
        pass


def parse_stock_code(code: str) -> Tuple[str, str]:
    """Split a code into (market, pure code).

    Shanghai listings start with 5, 6, 9 or 11; Shenzhen with 0, 1 or 3;
    Hong Kong codes carry an explicit ``hk`` prefix. Unknown codes map to
    an empty market.
    """
    code = (code or "").strip()
    lowered = code.lower()
    if lowered.startswith('hk'):
        return 'hk', code[2:]
    if lowered.startswith(('sh', 'sz')) and code[2:].isdigit():
        return lowered[:2], code[2:]
    if code.startswith(('6', '5', '9', '11')):
        return 'sh', code
    if code.startswith(('0', '1', '3')):
        return 'sz', code
    return '', code
