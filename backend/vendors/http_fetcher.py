"""
HTTP Price Fetcher
Delegates menu extraction to the browser automation service over HTTP.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from scheduler.exceptions import VendorFetchError

from .base import PriceFetcher, PriceResult

logger = logging.getLogger(__name__)


class HttpPriceFetcher(PriceFetcher):
    """Asks the automation service to extract and store one vendor's menu.

    The service answers `POST /api/vendors/{vendor_id}/extract` with
    `{"success": bool, "items_updated": int, "vendor_name": str, "error": str}`.
    """

    EXTRACT_PATH = "/api/vendors/{vendor_id}/extract"

    def __init__(self, base_url: str, api_key: Optional[str] = None,
                 request_timeout: float = 120.0, max_connections: int = 5):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.max_connections,
                    limit_per_host=self.max_connections,
                    ttl_dns_cache=300,
                )
                headers = {"Accept": "application/json"}
                if self.api_key:
                    headers["Authorization"] = f"Bearer {self.api_key}"
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=aiohttp.ClientTimeout(total=self.request_timeout, connect=10),
                    headers=headers,
                )
                logger.info(f"Created automation service session for {self.base_url}")
            return self._session

    async def fetch(self, vendor_id: str, timeout: Optional[float] = None) -> PriceResult:
        session = await self._get_session()
        url = self.base_url + self.EXTRACT_PATH.format(vendor_id=vendor_id)
        payload = {"vendor_id": vendor_id}
        if timeout is not None:
            payload["timeout_ms"] = int(timeout * 1000)

        try:
            async with session.post(url, json=payload) as response:
                body = await self._read_json(response)
                if response.status >= 400:
                    message = body.get("error") or body.get("message") or f"HTTP {response.status}"
                    raise VendorFetchError(vendor_id, message, status=response.status)
        except aiohttp.ClientError as e:
            raise VendorFetchError(vendor_id, f"Automation service unreachable: {e}") from e

        if not body.get("success", False):
            raise VendorFetchError(vendor_id, body.get("error") or "Extraction failed")

        return PriceResult(
            vendor_id=vendor_id,
            items_updated=int(body.get("items_updated") or 0),
            vendor_name=body.get("vendor_name") or "",
            details={k: v for k, v in body.items() if k not in ("success", "items_updated", "vendor_name")},
        )

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("Closed automation service session")
        self._session = None

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
