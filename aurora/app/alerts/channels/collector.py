"""
collector.py — Network send of an SOS alert to the remote collector.

    App  →  HTTP POST (JSON)  →  Collector

Request body (always ``status: "pending"`` outbound):

    {
        "latitude": 12.9, "longitude": 77.6,
        "timestamp": "2026-01-01T10:00:00+00:00",
        "status": "pending",
        "message": "SOS Alert - Emergency situation",
        "contact_numbers": "112,108"
    }

Any non-2xx response or transport error (including the send timeout) is
raised as NetworkSendError.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from aurora.app.alerts.models import SOSAlert
from aurora.app.core.errors import NetworkSendError

logger = logging.getLogger(__name__)


class CollectorClient:
    """POSTs alerts to ``url`` with a bounded timeout."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def send(self, alert: SOSAlert) -> None:
        """Deliver ``alert``; raises NetworkSendError on any failure."""
        client = await self._get_client()
        start = time.perf_counter()
        try:
            response = await client.post(self.url, json=alert.to_wire())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "[COLLECTOR] Alert %s rejected: HTTP %d",
                alert.id, exc.response.status_code,
                extra={"alert_id": alert.id, "status_code": exc.response.status_code},
            )
            raise NetworkSendError(
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "[COLLECTOR] Alert %s transport error: %s: %s",
                alert.id, type(exc).__name__, exc,
                extra={"alert_id": alert.id},
            )
            raise NetworkSendError(f"{type(exc).__name__}: {exc}") from exc

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "[COLLECTOR] Alert %s accepted: HTTP %d (%.0fms)",
            alert.id, response.status_code, duration_ms,
            extra={"alert_id": alert.id, "duration_ms": duration_ms},
        )
