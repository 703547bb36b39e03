"""
Tracked instrument model
Mirrors the record shape kept in the record store
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SecurityType(Enum):
    """Kinds of instruments that can be tracked"""
    STOCK = "stock"
    FUND = "fund"
    ETF = "etf"
    BOND = "bond"
    COMMODITY = "commodity"
    CASH = "cash"

    @classmethod
    def parse(cls, value: Any) -> "SecurityType":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        if raw == "gold":
            # Older records stored gold holdings under their own kind
            return cls.COMMODITY
        try:
            return cls(raw)
        except ValueError:
            return cls.STOCK


CASH_PRICE = 1.0


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as written by the browser extension
        return datetime.fromtimestamp(value / 1000)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Instrument:
    """A holding tracked by the user"""
    id: str
    code: str
    name: str
    kind: SecurityType
    amount: float = 0.0
    target_percentage: float = 0.0
    current_price: Optional[float] = None
    last_update: Optional[datetime] = None
    sector: Optional[str] = None
    industry: Optional[str] = None

    def __post_init__(self):
        self.kind = SecurityType.parse(self.kind)
        if self.kind is SecurityType.CASH:
            self.current_price = CASH_PRICE

    @property
    def is_cash(self) -> bool:
        return self.kind is SecurityType.CASH

    @property
    def is_tracked(self) -> bool:
        """Only instruments with a code are refreshed"""
        return bool(self.code and self.code.strip())

    @property
    def market_value(self) -> Optional[float]:
        if self.current_price is None:
            return None
        return self.amount * self.current_price

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored record shape"""
        data: Dict[str, Any] = {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'type': self.kind.value,
            'amount': self.amount,
            'targetPercentage': self.target_percentage,
        }
        if self.current_price is not None:
            data['currentPrice'] = self.current_price
        if self.last_update is not None:
            data['lastUpdate'] = self.last_update.isoformat()
        if self.sector:
            data['sector'] = self.sector
        if self.industry:
            data['industry'] = self.industry
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Instrument':
        """Create from a stored record"""
        price = data.get('currentPrice')
        return cls(
            id=str(data['id']),
            code=str(data.get('code') or ''),
            name=str(data.get('name') or ''),
            kind=SecurityType.parse(data.get('type')),
            amount=float(data.get('amount') or 0),
            target_percentage=float(data.get('targetPercentage') or 0),
            current_price=float(price) if price is not None else None,
            last_update=_parse_timestamp(data.get('lastUpdate')),
            sector=data.get('sector') or None,
            industry=data.get('industry') or None,
        )
