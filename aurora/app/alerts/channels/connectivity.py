"""
connectivity.py — Network reachability (ConnectivityOracle).

``is_online()`` issues a small GET against a probe URL.  Any transport
error or timeout counts as offline; it never raises.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class HttpConnectivityOracle:
    def __init__(
        self,
        probe_url: str,
        *,
        timeout_seconds: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.probe_url = probe_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def is_online(self) -> bool:
        client = await self._get_client()
        try:
            response = await client.get(self.probe_url)
        except httpx.HTTPError as exc:
            logger.info("Connectivity probe failed: %s", exc)
            return False
        # Captive portals answer with redirects / 200 HTML; anything < 400 is reachable
        online = response.status_code < 400
        logger.debug("Connectivity probe → HTTP %d (online=%s)", response.status_code, online)
        return online
