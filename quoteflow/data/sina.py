"""
Sina Finance adapter
Plain-text quote feed from hq.sinajs.cn
"""

import re
from datetime import datetime
from typing import Dict, List
from urllib.parse import quote

from ..domain.instrument import SecurityType
from ..utils import get_logger
from .base import PriceData, ProviderError, SearchResult, SecurityInfo, SourceName, parse_stock_code
from .http import HttpFinanceProvider, to_float

logger = get_logger(__name__)

_QUOTED = re.compile(r'="(.*)"', re.DOTALL)


class SinaFinanceService(HttpFinanceProvider):
    """
    Sina quote feed
    Responses are GBK encoded ``var hq_str_xx="field,field,..."`` lines
    """

    source = SourceName.SINA
    referer = "https://finance.sina.com.cn"
    quote_url = "http://hq.sinajs.cn/list="
    search_url = "https://suggest3.sinajs.cn/suggest/type=111&key="

    @staticmethod
    def full_code(market: str, code: str) -> str:
        if not code:
            raise ProviderError(SourceName.SINA.value, "empty security code")
        if market in ('sh', 'sz', 'hk'):
            return f"{market}{code}"
        return code

    async def _fetch_fields(self, code: str) -> Dict:
        market, pure_code = parse_stock_code(code)
        text = await self._get_text(
            f"{self.quote_url}{self.full_code(market, pure_code)}", encoding="gbk"
        )
        return self.parse_quote(text)

    async def fetch_security_info(self, code: str) -> SecurityInfo:
        market, pure_code = parse_stock_code(code)
        data = await self._fetch_fields(code)
        if not data.get('name'):
            raise ProviderError(self.source.value, f"invalid security data for {code}")

        return SecurityInfo(
            code=pure_code,
            name=data['name'],
            # Sina only serves listed equities
            kind=SecurityType.STOCK,
            current_price=data['price'],
            last_update=datetime.now(),
            market=market or None,
        )

    async def fetch_price_data(self, code: str) -> PriceData:
        _, pure_code = parse_stock_code(code)
        data = await self._fetch_fields(code)

        return PriceData(
            code=pure_code,
            price=data['price'],
            change=data['change'],
            change_percent=data['change_percent'],
            high=data['high'],
            low=data['low'],
            open=data['open'],
            last_close=data['last_close'],
            volume=data['volume'],
            amount=data['amount'],
            timestamp=datetime.now(),
        )

    async def search_securities(self, query: str) -> List[SearchResult]:
        if not query.strip():
            return []

        text = await self._get_text(f"{self.search_url}{quote(query)}", encoding="gbk")
        return self.parse_search(text)

    def parse_quote(self, text: str) -> Dict:
        match = _QUOTED.search(text)
        if not match:
            raise ProviderError(self.source.value, "invalid response format")

        fields = match.group(1).split(',')
        if len(fields) < 10:
            raise ProviderError(self.source.value, "insufficient data fields")

        try:
            price = float(fields[3])
            last_close = float(fields[2])
        except ValueError as e:
            raise ProviderError(self.source.value, "invalid price data") from e

        change = price - last_close
        return {
            'name': fields[0],
            'open': to_float(fields[1]),
            'last_close': last_close,
            'price': price,
            'high': to_float(fields[4]),
            'low': to_float(fields[5]),
            'volume': int(to_float(fields[8])),
            'amount': to_float(fields[9]),
            'change': change,
            'change_percent': (change / last_close * 100) if last_close else 0.0,
        }

    def parse_search(self, text: str) -> List[SearchResult]:
        match = _QUOTED.search(text)
        if not match:
            return []

        results = []
        for item in match.group(1).split(';'):
            if ',' not in item:
                continue
            parts = item.split(',')
            code, name = parts[0].strip(), parts[1].strip()
            if not code or not name:
                continue
            market, _ = parse_stock_code(code)
            results.append(SearchResult(
                code=code,
                name=name,
                kind=SecurityType.STOCK,
                market=market or 'unknown',
            ))
        return results
