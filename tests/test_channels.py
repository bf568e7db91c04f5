"""
test_channels.py — HTTP channels against httpx.MockTransport.

Covers:
    • CollectorClient (wire body, non-2xx, transport errors, timeout)
    • SmsGateway (message text, simulation, Twilio, unavailable provider)
    • VoiceDialer
    • HttpConnectivityOracle
    • LastKnownLocationProvider

Run with:
    pytest tests/test_channels.py -v
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from aurora.app.alerts.channels.collector import CollectorClient
from aurora.app.alerts.channels.connectivity import HttpConnectivityOracle
from aurora.app.alerts.channels.location import LastKnownLocationProvider
from aurora.app.alerts.channels.sms_gateway import (
    SmsGateway,
    format_sos_sms,
    maps_link,
)
from aurora.app.alerts.channels.voice_call import VoiceDialer
from aurora.app.alerts.models import LocationFix, SOSAlert
from aurora.app.core.errors import NetworkSendError

COLLECTOR_URL = "https://collector.test/sos"


def _alert():
    return SOSAlert(
        id=7,
        latitude=12.9,
        longitude=77.6,
        timestamp="2026-01-01T10:00:00+00:00",
        message="SOS Alert - Emergency situation",
        contact_numbers=["112", "108"],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Collector
# ═══════════════════════════════════════════════════════════════════════════

class TestCollectorClient:

    def _send(self, handler):
        client = CollectorClient(
            COLLECTOR_URL, timeout_seconds=5.0, transport=httpx.MockTransport(handler),
        )

        async def scenario():
            try:
                await client.send(_alert())
            finally:
                await client.close()

        asyncio.run(scenario())

    def test_posts_wire_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"ok": True})

        self._send(handler)
        assert seen["method"] == "POST"
        assert seen["url"] == COLLECTOR_URL
        assert seen["body"] == {
            "latitude": 12.9,
            "longitude": 77.6,
            "timestamp": "2026-01-01T10:00:00+00:00",
            "status": "pending",
            "message": "SOS Alert - Emergency situation",
            "contact_numbers": "112,108",
        }

    def test_non_2xx_raises(self):
        with pytest.raises(NetworkSendError) as exc_info:
            self._send(lambda request: httpx.Response(503))
        assert exc_info.value.details == {"http_status": 503}
        assert "HTTP 503" in exc_info.value.message

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkSendError):
            self._send(handler)

    def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkSendError) as exc_info:
            self._send(handler)
        assert "ReadTimeout" in exc_info.value.message


# ═══════════════════════════════════════════════════════════════════════════
# SMS
# ═══════════════════════════════════════════════════════════════════════════

class TestSmsText:

    def test_maps_link_uses_exact_coordinates(self):
        assert maps_link(12.9, 77.6) == "https://maps.google.com/?q=12.9,77.6"
        assert maps_link(-33.868820, 151.209296) == (
            "https://maps.google.com/?q=-33.86882,151.209296"
        )

    def test_maps_link_never_uses_exponent_form(self):
        assert maps_link(0.00001, -0.000025) == "https://maps.google.com/?q=0.00001,-0.000025"
        assert maps_link(12.0, -0.0) == "https://maps.google.com/?q=12,0"

    def test_message_template(self):
        text = format_sos_sms(12.9, 77.6, "2026-01-01T10:00:00+00:00")
        assert text.startswith(
            "EMERGENCY SOS: I need help immediately! My location: "
            "https://maps.google.com/?q=12.9,77.6 Time: "
        )

    def test_unparseable_timestamp_passed_through(self):
        text = format_sos_sms(1.0, 2.0, "yesterday")
        assert text.endswith("Time: yesterday")


class TestSmsGateway:

    def test_simulation_delivers_every_number(self):
        gateway = SmsGateway("simulation")
        results = asyncio.run(gateway.send_broadcast(["112", "108"], "help"))
        assert [(r.phone, r.delivered) for r in results] == [("112", True), ("108", True)]

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            SmsGateway("pigeon")

    def test_unavailable_provider_never_raises(self):
        gateway = SmsGateway("none")
        assert not gateway.is_available()
        results = asyncio.run(gateway.send_broadcast(["112"], "help"))
        assert results[0].delivered is False
        assert "none" in results[0].error

    def test_twilio_without_credentials_unavailable(self):
        assert not SmsGateway("twilio").is_available()

    def test_twilio_per_number_isolation(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            requests.append((str(request.url), form))
            if form["To"] == ["108"]:
                return httpx.Response(400, json={"message": "invalid number"})
            if form["To"] == ["100"]:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        gateway = SmsGateway(
            "twilio",
            account_sid="AC1",
            auth_token="tok",
            from_number="+15550000",
            transport=httpx.MockTransport(handler),
        )

        async def scenario():
            try:
                return await gateway.send_broadcast(["112", "108", "100", "101"], "help")
            finally:
                await gateway.close()

        results = asyncio.run(scenario())
        assert [(r.phone, r.delivered) for r in results] == [
            ("112", True), ("108", False), ("100", False), ("101", True),
        ]
        assert results[0].provider_response["sid"] == "SM123"
        assert requests[0][0] == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
        assert requests[0][1]["Body"] == ["help"]
        assert requests[0][1]["From"] == ["+15550000"]


# ═══════════════════════════════════════════════════════════════════════════
# Voice, connectivity, location
# ═══════════════════════════════════════════════════════════════════════════

class TestVoiceDialer:

    def test_simulation(self):
        assert asyncio.run(VoiceDialer("simulation").dial("112")) is True

    def test_unconfigured_provider_returns_false(self):
        assert asyncio.run(VoiceDialer("none").dial("112")) is False
        assert asyncio.run(VoiceDialer("twilio").dial("112")) is False

    def test_twilio_call(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "CA1"})

        dialer = VoiceDialer(
            "twilio", account_sid="AC1", auth_token="tok", from_number="+1555",
            transport=httpx.MockTransport(handler),
        )
        assert asyncio.run(dialer.dial("112")) is True
        assert seen["url"].endswith("/Accounts/AC1/Calls.json")
        assert seen["form"]["To"] == ["112"]

    def test_transport_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        dialer = VoiceDialer(
            "twilio", account_sid="AC1", auth_token="tok", from_number="+1555",
            transport=httpx.MockTransport(handler),
        )
        assert asyncio.run(dialer.dial("112")) is False


class TestConnectivityOracle:

    def _probe(self, handler):
        oracle = HttpConnectivityOracle(
            "https://probe.test/generate_204", transport=httpx.MockTransport(handler),
        )

        async def scenario():
            try:
                return await oracle.is_online()
            finally:
                await oracle.close()

        return asyncio.run(scenario())

    def test_204_is_online(self):
        assert self._probe(lambda r: httpx.Response(204)) is True

    def test_server_error_is_offline(self):
        assert self._probe(lambda r: httpx.Response(502)) is False

    def test_transport_error_is_offline(self):
        def handler(request):
            raise httpx.ConnectTimeout("timeout", request=request)

        assert self._probe(handler) is False


class TestLastKnownLocation:

    NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    def _provider(self, max_age_seconds=60):
        return LastKnownLocationProvider(max_age_seconds, clock=lambda: self.NOW)

    def _fix(self, seconds_old, lat=12.9, lon=77.6):
        return LocationFix(lat, lon, (self.NOW - timedelta(seconds=seconds_old)).isoformat())

    def test_none_before_first_fix(self):
        provider = LastKnownLocationProvider()
        assert asyncio.run(provider.get_current_location()) is None

    def test_returns_latest_fix(self):
        provider = self._provider()
        provider.update(self._fix(30, 1.0, 2.0))
        provider.update(self._fix(5))
        fix = asyncio.run(provider.get_current_location())
        assert (fix.latitude, fix.longitude) == (12.9, 77.6)

    def test_age_measured_from_capture_time(self):
        provider = self._provider(max_age_seconds=60)
        provider.update(self._fix(61))
        assert asyncio.run(provider.get_current_location()) is None

    def test_years_old_capture_unavailable(self):
        provider = LastKnownLocationProvider(300)
        provider.update(LocationFix(12.9, 77.6, "2020-01-01T00:00:00+00:00"))
        assert asyncio.run(provider.get_current_location()) is None

    def test_naive_capture_time_read_as_utc(self):
        provider = self._provider(max_age_seconds=60)
        naive = (self.NOW - timedelta(seconds=10)).replace(tzinfo=None)
        provider.update(LocationFix(12.9, 77.6, naive.isoformat()))
        assert asyncio.run(provider.get_current_location()) is not None

    def test_unparseable_timestamp_rejected(self):
        provider = self._provider()
        with pytest.raises(ValueError):
            provider.update(LocationFix(12.9, 77.6, "last tuesday"))
        assert provider.last_fix is None
