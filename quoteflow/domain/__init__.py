"""
Domain layer
Instrument model and trading session rules
"""

from .instrument import CASH_PRICE, Instrument, SecurityType
from .market_clock import MarketClock

__all__ = [
    'CASH_PRICE',
    'Instrument',
    'SecurityType',
    'MarketClock',
]
