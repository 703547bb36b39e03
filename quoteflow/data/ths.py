"""
THS (10jqka) adapter
JSONP line feed from d.10jqka.com.cn
"""

from datetime import datetime
from typing import Any, Dict, List

from ..domain.instrument import SecurityType
from ..utils import get_logger
from .base import PriceData, ProviderError, SearchResult, SecurityInfo, SourceName, parse_stock_code
from .http import HttpFinanceProvider, to_float

logger = get_logger(__name__)


def determine_type(code: str) -> SecurityType:
    if not code:
        return SecurityType.STOCK
    if code.startswith(('51', '588')):
        return SecurityType.ETF
    if code.startswith(('11', '12')):
        return SecurityType.BOND
    if code.startswith(('16', '50')):
        return SecurityType.FUND
    return SecurityType.STOCK


class ThsFinanceService(HttpFinanceProvider):
    """10jqka quote and search endpoints"""

    source = SourceName.THS
    referer = "https://www.10jqka.com.cn"
    quote_api = "https://d.10jqka.com.cn/v6/line/"
    search_api = "https://search.10jqka.com.cn/stock/search/"

    @staticmethod
    def full_code(market: str, code: str) -> str:
        if market == 'sh':
            return f"1{code}"
        if market == 'sz':
            return f"0{code}"
        if market == 'hk':
            return f"116{code}"
        return code

    async def _fetch_quote(self, code: str) -> Dict[str, Any]:
        market, pure_code = parse_stock_code(code)
        payload = await self._get_json(f"{self.quote_api}{self.full_code(market, pure_code)}/all.js")
        quote = payload.get('data') if isinstance(payload, dict) else None
        if not quote:
            raise ProviderError(self.source.value, f"invalid response format for {code}")
        return quote

    async def fetch_security_info(self, code: str) -> SecurityInfo:
        market, pure_code = parse_stock_code(code)
        quote = await self._fetch_quote(code)

        return SecurityInfo(
            code=pure_code,
            name=str(quote.get('name') or ''),
            kind=determine_type(pure_code),
            current_price=to_float(quote.get('price')),
            last_update=datetime.now(),
            market=market or None,
        )

    async def fetch_price_data(self, code: str) -> PriceData:
        _, pure_code = parse_stock_code(code)
        quote = await self._fetch_quote(code)

        try:
            price = float(quote['price'])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.source.value, f"no price for {code}") from e

        return PriceData(
            code=pure_code,
            price=price,
            change=to_float(quote.get('change')),
            change_percent=to_float(quote.get('changePercent')),
            high=to_float(quote.get('high')),
            low=to_float(quote.get('low')),
            open=to_float(quote.get('open')),
            last_close=to_float(quote.get('preClose')),
            volume=int(to_float(quote.get('volume'))),
            amount=to_float(quote.get('amount')),
            timestamp=datetime.now(),
        )

    async def search_securities(self, query: str) -> List[SearchResult]:
        if not query.strip():
            return []

        payload = await self._get_json(
            self.search_api,
            params={
                'keyword': query,
                'type': 'stock,fund,etf,bond',
                'page': 1,
                'perpage': 20,
            },
            headers={'Accept': '*/*', 'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8'},
        )
        rows = payload.get('data') if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            return []

        results = []
        for row in rows:
            if not row or not row.get('code') or not row.get('name'):
                continue
            market, _ = parse_stock_code(str(row['code']))
            results.append(SearchResult(
                code=str(row['code']),
                name=str(row['name']),
                kind=determine_type(str(row['code'])),
                market=market or 'unknown',
            ))
        return results
