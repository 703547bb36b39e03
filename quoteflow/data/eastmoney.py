"""
EastMoney adapter
JSON quote API at push2.eastmoney.com; prices are reported in cents
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Tuple

from ..domain.instrument import SecurityType
from ..utils import get_logger
from .base import (
    PriceData,
    ProviderError,
    QuoteFlowError,
    SearchResult,
    SecurityInfo,
    SourceName,
    parse_stock_code,
)
from .http import HttpFinanceProvider, to_float

logger = get_logger(__name__)

QUOTE_FIELDS = "f57,f58,f43,f169,f170,f46,f44,f45,f168,f47,f60,f48"
SECTOR_FIELDS = ",".join(f"f{n}" for n in range(127, 151))


def determine_type(code: str) -> SecurityType:
    """Classify a code by its numeric prefix"""
    if code.startswith('000307'):
        return SecurityType.COMMODITY
    if code.startswith(('51', '588', '159')):
        return SecurityType.ETF
    if (
        (code.startswith('00') and not code.startswith('000'))
        or code.startswith(('15', '16', '50', '11', '015'))
    ):
        return SecurityType.FUND
    return SecurityType.STOCK


class EastMoneyFinanceService(HttpFinanceProvider):
    """EastMoney quote, sector and search endpoints"""

    source = SourceName.EASTMONEY
    referer = "https://quote.eastmoney.com"
    quote_api = "https://push2.eastmoney.com/api/qt/stock/get"
    search_api = "https://searchapi.eastmoney.com/api/suggest/get"
    search_token = "D43BF40C"

    @staticmethod
    def secid(market: str, code: str) -> str:
        if market == 'sh':
            return f"1.{code}"
        if market == 'sz':
            return f"0.{code}"
        if market == 'hk':
            return f"116.{code}"
        return code

    async def _fetch_quote(self, code: str) -> Dict[str, Any]:
        market, pure_code = parse_stock_code(code)
        payload = await self._get_json(
            self.quote_api,
            params={'fields': QUOTE_FIELDS, 'secid': self.secid(market, pure_code)},
        )
        quote = payload.get('data') if isinstance(payload, dict) else None
        if not quote:
            raise ProviderError(self.source.value, f"invalid response format for {code}")
        return quote

    async def get_sector_and_industry(self, code: str) -> Tuple[str, str]:
        """Best-effort sector lookup; failures yield empty strings"""
        market, pure_code = parse_stock_code(code)
        try:
            payload = await self._get_json(
                self.quote_api,
                params={'secid': self.secid(market, pure_code), 'fields': SECTOR_FIELDS},
            )
        except QuoteFlowError as e:
            logger.warning(f"Failed to fetch sector info for {code}: {e}")
            return '', ''

        data = payload.get('data') if isinstance(payload, dict) else None
        if not data:
            return '', ''

        sector = data.get('f127') or data.get('f129') or data.get('f131') or ''
        industry = data.get('f128') or data.get('f130') or data.get('f132') or ''
        return str(sector), str(industry)

    async def fetch_security_info(self, code: str) -> SecurityInfo:
        market, pure_code = parse_stock_code(code)
        sector, industry = await self.get_sector_and_industry(code)
        quote = await self._fetch_quote(code)

        return SecurityInfo(
            code=pure_code,
            name=str(quote.get('f58') or ''),
            kind=determine_type(pure_code),
            current_price=to_float(quote.get('f43')) / 100,
            last_update=datetime.now(),
            market=market or None,
            sector=sector or None,
            industry=industry or None,
        )

    async def fetch_price_data(self, code: str) -> PriceData:
        _, pure_code = parse_stock_code(code)
        quote = await self._fetch_quote(code)
        return self.parse_quote(pure_code, quote)

    def parse_quote(self, code: str, quote: Dict[str, Any]) -> PriceData:
        try:
            raw_price = float(quote['f43'])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.source.value, f"no price for {code}") from e

        raw_close = to_float(quote.get('f60'))
        return PriceData(
            code=code,
            price=raw_price / 100,
            change=(raw_price - raw_close) / 100 if raw_close else 0.0,
            change_percent=(raw_price - raw_close) / raw_close * 100 if raw_close else 0.0,
            high=to_float(quote.get('f44')) / 100,
            low=to_float(quote.get('f45')) / 100,
            open=to_float(quote.get('f46')) / 100,
            last_close=raw_close / 100,
            # Volume is reported in lots of 100, turnover in units of 10k
            volume=int(to_float(quote.get('f47')) * 100),
            amount=to_float(quote.get('f48')) * 10000,
            timestamp=datetime.now(),
        )

    async def search_securities(self, query: str) -> List[SearchResult]:
        if not query.strip():
            return []

        payload = await self._get_json(
            self.search_api,
            params={'cb': 'jQuery', 'input': query, 'token': self.search_token, 'type': 14},
        )
        table = payload.get('QuotationCodeTable') if isinstance(payload, dict) else None
        rows = table.get('Data') if isinstance(table, dict) else None
        if not isinstance(rows, list):
            return []

        rows = [row for row in rows if row and row.get('Code') and row.get('Name')]
        sectors = await asyncio.gather(
            *(self.get_sector_and_industry(row['Code']) for row in rows)
        )

        results = []
        for row, (sector, industry) in zip(rows, sectors):
            market, _ = parse_stock_code(row['Code'])
            results.append(SearchResult(
                code=row['Code'],
                name=row['Name'],
                kind=determine_type(row['Code']),
                market=market or 'unknown',
                sector=sector or None,
                industry=industry or None,
            ))
        return results
