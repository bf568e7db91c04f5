"""
voice_call.py — Backup voice call to the emergency number.

Placed once per countdown expiry, after dispatch, whatever the dispatch
outcome.  Best-effort: ``dial`` returns False on failure and never raises.

    simulation: log the call (``tel:<number>``)
    twilio:     POST https://api.twilio.com/2010-04-01/Accounts/{SID}/Calls.json
                form: To, From, Twiml
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from aurora.app.alerts.channels.sms_gateway import TWILIO_API_BASE

logger = logging.getLogger(__name__)

_CALL_TWIML = (
    "<Response><Say>This is an automated emergency call. "
    "The caller triggered an S O S alert and may need help.</Say></Response>"
)


class VoiceDialer:
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
        self.provider = provider
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._timeout = timeout_seconds
        self._transport = transport

    async def dial(self, number: str) -> bool:
        try:
            if self.provider == "simulation":
                logger.warning("[DIAL] Auto-dialing tel:%s", number)
                return True
            if self.provider == "twilio":
                return await self._dial_twilio(number)
            logger.error("[DIAL] No voice provider configured (%s)", self.provider)
            return False
        except Exception as exc:
            logger.error("[DIAL] Failed to dial %s: %s", number, exc)
            return False

    async def _dial_twilio(self, number: str) -> bool:
        if not (self._account_sid and self._auth_token and self._from_number):
            logger.error("[DIAL/Twilio] Missing credentials")
            return False
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{self._account_sid}/Calls.json",
                data={"To": number, "From": self._from_number, "Twiml": _CALL_TWIML},
                auth=(self._account_sid, self._auth_token),
            )
        if response.is_success:
            logger.warning("[DIAL/Twilio] Call placed to %s", number)
            return True
        logger.error("[DIAL/Twilio] Call to %s rejected: HTTP %d", number, response.status_code)
        return False
