"""
Shared HTTP plumbing for the concrete quote sources
"""

import json
import re
from typing import Any, Dict, Optional

import httpx

from ..utils import get_logger
from .base import FinanceProvider, ProviderError

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

_JSONP = re.compile(r"^[^(]*\((.*)\)\s*;?\s*$", re.DOTALL)


def strip_jsonp(text: str) -> Any:
    """Decode a JSONP body such as ``cb({...})``"""
    match = _JSONP.match(text.strip())
    payload = match.group(1) if match else text
    return json.loads(payload)


class HttpFinanceProvider(FinanceProvider):
    """
    FinanceProvider that talks to a public quote endpoint over HTTP
    The client is created lazily and may be injected for tests
    """

    referer = ""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.timeout = timeout
        self.client = client
        self._owns_client = client is None

    async def connect(self):
        """Initialize HTTP client"""
        if not self.client:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_client = True
            logger.debug(f"{self.source.value} HTTP client initialized")

    async def disconnect(self):
        """Close HTTP client"""
        if self.client and self._owns_client:
            await self.client.aclose()
        self.client = None

    async def close(self):
        await self.disconnect()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Referer": self.referer} if self.referer else {}
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        if not self.client:
            await self.connect()

        try:
            response = await self.client.get(url, params=params, headers=self._headers(headers))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.source.value, f"HTTP error {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.source.value, f"request failed: {e}") from e

        return response

    async def _get_text(self, url: str, params=None, headers=None, encoding: Optional[str] = None) -> str:
        response = await self._request(url, params=params, headers=headers)
        if encoding:
            text = response.content.decode(encoding, errors="replace")
        else:
            text = response.text
        if not text or not text.strip():
            raise ProviderError(self.source.value, "empty response")
        return text

    async def _get_json(self, url: str, params=None, headers=None) -> Any:
        text = await self._get_text(url, params=params, headers=headers)
        try:
            return strip_jsonp(text)
        except ValueError as e:
            raise ProviderError(self.source.value, f"invalid JSON payload: {e}") from e


def to_float(value: Any, default: float = 0.0) -> float:
    """Lenient float conversion for provider payloads ('-' and blanks become default)"""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
