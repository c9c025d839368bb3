"""HTTP client for the upstream game data APIs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "Jstudio-key"
MAX_BACKOFF_SEC = 60.0


class UpstreamClient:
    """Fetches JSON documents, returning ``None`` once retries run out."""

    def __init__(
        self,
        session: ClientSession,
        *,
        stock_url: Optional[str] = None,
        weather_url: Optional[str] = None,
        info_url: Optional[str] = None,
        event_url: Optional[str] = None,
        api_key: Optional[str] = None,
        retries: int = 3,
        backoff: float = 2.0,
        timeout: float = 15.0,
    ) -> None:
        self._session = session
        self.stock_url = stock_url
        self.weather_url = weather_url
        self.info_url = info_url
        self.event_url = event_url
        self._api_key = api_key
        self._retries = max(1, retries)
        self._backoff = backoff
        self._timeout = ClientTimeout(total=timeout)

    def _headers(self, with_body: bool) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._api_key:
            headers[API_KEY_HEADER] = self._api_key
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def fetch_json(self, url: Optional[str], body: Any = None) -> Any:
        if not url:
            return None
        method = "POST" if body is not None else "GET"
        for attempt in range(1, self._retries + 1):
            try:
                async with self._session.request(
                    method,
                    url,
                    json=body,
                    headers=self._headers(body is not None),
                    timeout=self._timeout,
                ) as resp:
                    if resp.status >= 400:
                        LOGGER.warning("[fetch] %s answered HTTP %s", url, resp.status)
                        return None
                    return await resp.json(content_type=None)
            except (ClientError, asyncio.TimeoutError, ValueError) as e:
                LOGGER.warning("[fetch] %s attempt %d/%d failed: %s", url, attempt, self._retries, e)
                if attempt < self._retries:
                    await asyncio.sleep(min(self._backoff * 2 ** (attempt - 1), MAX_BACKOFF_SEC))
        return None

    async def fetch_stock(self) -> Any:
        return await self.fetch_json(self.stock_url)

    async def fetch_weather(self) -> Any:
        return await self.fetch_json(self.weather_url)

    async def fetch_info(self) -> Any:
        return await self.fetch_json(self.info_url)

    async def fetch_current_event(self) -> Any:
        return await self.fetch_json(self.event_url)
