"""
sms_gateway.py — Best-effort SMS broadcast (MessagingGateway).

Delivery mechanism:
    • simulation: log only (development default)
    • twilio:     HTTP POST per number to the Twilio Messages API
    • none:       device has no SMS capability → MessagingUnavailable

═══════════════════════════════════════════════════════════════════════════
SMS GATEWAY ARCHITECTURE
═══════════════════════════════════════════════════════════════════════════

    App  →  HTTP POST  →  SMS Gateway API  →  Carrier  →  Handset

    Twilio: POST https://api.twilio.com/2010-04-01/Accounts/{SID}/Messages.json
            form: To, From, Body   auth: (SID, token)

Each number is sent independently: one failure never aborts the rest, and
``send_broadcast`` never raises.  Failures are logged and reported in the
per-number SmsResult list only.

═══════════════════════════════════════════════════════════════════════════
MESSAGE TEMPLATE
═══════════════════════════════════════════════════════════════════════════

    "EMERGENCY SOS: I need help immediately! My location:
     https://maps.google.com/?q={lat},{lon} Time: {locale timestamp}"

Coordinates are rendered with Python's shortest round-trip float repr, so
the link carries the exact captured position.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import httpx

from aurora.app.alerts.models import SmsResult
from aurora.app.core.errors import MessagingUnavailableError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
SMS_LEAD_IN = "EMERGENCY SOS: I need help immediately!"

PROVIDERS = ("simulation", "twilio", "none")


def _plain_number(value: float) -> str:
    """Shortest round-tripping decimal, never in exponent form."""
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def maps_link(latitude: float, longitude: float) -> str:
    return f"https://maps.google.com/?q={_plain_number(latitude)},{_plain_number(longitude)}"


def _locale_time(timestamp: str) -> str:
    """Render an ISO-8601 instant in the device's locale and timezone."""
    try:
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%c")


def format_sos_sms(latitude: float, longitude: float, timestamp: str) -> str:
    """Human-readable SOS text with map link and capture time."""
    return (
        f"{SMS_LEAD_IN} My location: {maps_link(latitude, longitude)} "
        f"Time: {_locale_time(timestamp)}"
    )


class SmsGateway:
    """
    Provider-agnostic SMS sender.

    Parameters
    ----------
    provider : str
        "simulation", "twilio" or "none".
    account_sid, auth_token, from_number : str | None
        Twilio credentials (not needed for simulation).
    timeout_seconds : float
        HTTP timeout per message.
    """

    def __init__(
        self,
        provider: str = "simulation",
        *,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown SMS provider: {provider}")
        self.provider = provider
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._timeout = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def is_available(self) -> bool:
        if self.provider == "simulation":
            return True
        if self.provider == "twilio":
            return bool(self._account_sid and self._auth_token and self._from_number)
        return False

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

    async def send_broadcast(self, numbers: List[str], text: str) -> List[SmsResult]:
        """Send ``text`` to every number independently. Never raises."""
        if not self.is_available():
            err = MessagingUnavailableError(self.provider)
            logger.error("[SMS] %s — %d contacts not reached", err.message, len(numbers))
            return [SmsResult(phone=n, delivered=False, error=err.message) for n in numbers]

        results = []
        for number in numbers:
            try:
                result = await self._send_one(number, text)
            except Exception as exc:
                logger.error("[SMS] Failed for %s: %s", number, exc)
                result = SmsResult(phone=number, delivered=False, error=str(exc))
            results.append(result)

        delivered = sum(1 for r in results if r.delivered)
        logger.info(
            "[SMS] Broadcast complete: %d/%d delivered", delivered, len(results),
            extra={"channel": "sms", "contact_count": len(results)},
        )
        return results

    async def _send_one(self, number: str, text: str) -> SmsResult:
        if self.provider == "simulation":
            logger.info(
                "[SMS] → %s: %d chars → '%s'",
                number, len(text),
                text[:80] + ("..." if len(text) > 80 else ""),
            )
            return SmsResult(
                phone=number,
                delivered=True,
                provider_response={"mode": "simulated", "message_length": len(text)},
            )

        client = await self._get_client()
        response = await client.post(
            f"{TWILIO_API_BASE}/Accounts/{self._account_sid}/Messages.json",
            data={"To": number, "From": self._from_number, "Body": text},
            auth=(self._account_sid, self._auth_token),
        )
        if response.is_success:
            body = response.json()
            logger.info("[SMS/Twilio] Sent to %s (sid=%s)", number, body.get("sid"))
            return SmsResult(
                phone=number,
                delivered=True,
                provider_response={"sid": body.get("sid"), "status": body.get("status")},
            )

        logger.error(
            "[SMS/Twilio] Rejected for %s: HTTP %d", number, response.status_code,
        )
        return SmsResult(
            phone=number,
            delivered=False,
            error=f"HTTP {response.status_code}",
        )
