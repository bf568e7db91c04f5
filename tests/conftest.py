"""
Shared fakes for the SOS alert lifecycle tests.

Every collaborator the controller and pipeline talk to has an in-memory
stand-in here, so tests can pin connectivity, collector failures, SMS
failures and storage failures without any network or database.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

from aurora.app.alerts.controller import AlertController
from aurora.app.alerts.dispatch import DispatchPipeline
from aurora.app.alerts.models import (
    AlertStatus,
    EmergencyContact,
    LocationFix,
    SmsResult,
    SOSAlert,
    UserSettings,
)
from aurora.app.alerts.reconciler import PendingAlertReconciler
from aurora.app.alerts.roster import ContactRoster
from aurora.app.alerts.timer import CountdownTimer
from aurora.app.core.errors import (
    InvalidTransitionError,
    NetworkSendError,
    NotFoundError,
    PersistenceError,
)

# Bengaluru (12.9°N, 77.6°E)
TEST_LAT = 12.9
TEST_LON = 77.6


# ═══════════════════════════════════════════════════════════════════════════
# Channel fakes
# ═══════════════════════════════════════════════════════════════════════════

class FakeLocation:
    def __init__(self, fix: Optional[LocationFix] = None, *, available: bool = True):
        self.fix = fix or LocationFix(
            latitude=TEST_LAT, longitude=TEST_LON,
            timestamp="2026-01-01T10:00:00+00:00",
        )
        self.available = available
        self.calls = 0

    async def get_current_location(self) -> Optional[LocationFix]:
        self.calls += 1
        return self.fix if self.available else None


class FakeConnectivity:
    def __init__(self, online: bool = True, *, raises: bool = False):
        self.online = online
        self.raises = raises
        self.calls = 0

    async def is_online(self) -> bool:
        self.calls += 1
        if self.raises:
            raise RuntimeError("network state unavailable")
        return self.online


class FakeCollector:
    """Records every alert sent; ``fail`` makes each send raise NetworkSendError."""

    def __init__(self, fail: bool = False, *, gate: Optional[asyncio.Event] = None):
        self.fail = fail
        self.gate = gate
        self.sent: List[dict] = []
        self.calls = 0

    async def send(self, alert: SOSAlert) -> None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise NetworkSendError("HTTP 500", status_code=500)
        self.sent.append(alert.to_wire())


class FakeGateway:
    """Records broadcasts; numbers in ``failing`` come back undelivered."""

    def __init__(self, failing=(), *, available: bool = True):
        self.failing = set(failing)
        self.available = available
        self.broadcasts: List[tuple] = []

    def is_available(self) -> bool:
        return self.available

    @property
    def sent_numbers(self) -> List[str]:
        return [n for numbers, _ in self.broadcasts for n in numbers]

    async def send_broadcast(self, numbers: List[str], text: str) -> List[SmsResult]:
        self.broadcasts.append((list(numbers), text))
        return [
            SmsResult(phone=n, delivered=n not in self.failing,
                      error="carrier rejected" if n in self.failing else None)
            for n in numbers
        ]


class FakeDialer:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.dialed: List[str] = []

    async def dial(self, number: str) -> bool:
        self.dialed.append(number)
        return self.ok


class FakeBuzzer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.plays = 0

    async def play(self) -> None:
        self.plays += 1
        if self.fail:
            raise RuntimeError("audio device busy")


# ═══════════════════════════════════════════════════════════════════════════
# Storage fakes
# ═══════════════════════════════════════════════════════════════════════════

class FakeStore:
    """
    In-memory AlertStore with the same pending-only update rule.

    ``ops`` counts every call so tests can assert "zero operations".
    """

    def __init__(self, *, fail_insert: bool = False, fail_update: bool = False):
        self.rows: Dict[int, SOSAlert] = {}
        self.history: List[tuple] = []
        self.fail_insert = fail_insert
        self.fail_update = fail_update
        self.ops = 0
        self._next_id = 1

    def seed(self, alert: SOSAlert) -> SOSAlert:
        alert.id = self._next_id
        alert.created_at = datetime.now(timezone.utc)
        self.rows[alert.id] = alert
        self._next_id += 1
        return alert

    async def insert(self, alert: SOSAlert) -> int:
        self.ops += 1
        if self.fail_insert:
            raise PersistenceError("insert", "disk I/O error")
        stored = SOSAlert(
            latitude=alert.latitude, longitude=alert.longitude,
            timestamp=alert.timestamp, message=alert.message,
            contact_numbers=list(alert.contact_numbers),
        )
        self.seed(stored)
        alert.id = stored.id
        alert.created_at = stored.created_at
        return stored.id

    async def get(self, alert_id: int) -> SOSAlert:
        self.ops += 1
        if alert_id not in self.rows:
            raise NotFoundError("Alert", id=alert_id)
        return self.rows[alert_id]

    async def list_by_status(self, status: AlertStatus) -> List[SOSAlert]:
        self.ops += 1
        rows = [a for a in self.rows.values() if a.status is status]
        return sorted(rows, key=lambda a: a.id, reverse=True)

    async def list_recent(self, limit: int = 50) -> List[SOSAlert]:
        self.ops += 1
        return sorted(self.rows.values(), key=lambda a: a.id, reverse=True)[:limit]

    async def update_status(self, alert_id: int, status: AlertStatus) -> None:
        self.ops += 1
        if self.fail_update:
            raise PersistenceError("update_status", "database is locked", alert_id=alert_id)
        row = self.rows.get(alert_id)
        if row is None:
            raise NotFoundError("Alert", id=alert_id)
        if row.status is not AlertStatus.PENDING:
            raise InvalidTransitionError(alert_id, row.status.value, status.value)
        row.status = status
        self.history.append((alert_id, status))

    def status_of(self, alert_id: int) -> AlertStatus:
        return self.rows[alert_id].status


class FakeContactStore:
    """``initial=None`` means the roster was never saved."""

    def __init__(self, initial: Optional[List[EmergencyContact]] = None):
        self.saved = list(initial) if initial is not None else None
        self.saves = 0

    async def load(self) -> Optional[List[EmergencyContact]]:
        if self.saved is None:
            return None
        return [EmergencyContact(c.name, c.phone, c.relationship) for c in self.saved]

    async def save(self, contacts: List[EmergencyContact]) -> None:
        self.saves += 1
        self.saved = [EmergencyContact(c.name, c.phone, c.relationship) for c in contacts]


class FakeSettingsStore:
    def __init__(self, user_settings: Optional[UserSettings] = None):
        self.user_settings = user_settings or UserSettings()

    async def load(self) -> UserSettings:
        return self.user_settings

    async def save(self, user_settings: UserSettings) -> None:
        self.user_settings = user_settings


# ═══════════════════════════════════════════════════════════════════════════
# Timer control
# ═══════════════════════════════════════════════════════════════════════════

class ManualSleep:
    """Sleep that returns only when the test calls ``release()``."""

    def __init__(self):
        self.requested: List[float] = []
        self._event = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.requested.append(seconds)
        await self._event.wait()

    def release(self) -> None:
        self._event.set()


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ═══════════════════════════════════════════════════════════════════════════
# Harness
# ═══════════════════════════════════════════════════════════════════════════

def build_harness(
    *,
    contacts: Optional[List[EmergencyContact]] = None,
    user_settings: Optional[UserSettings] = None,
    online: bool = True,
    collector_fails: bool = False,
    location_available: bool = True,
    store: Optional[FakeStore] = None,
    gateway: Optional[FakeGateway] = None,
    collector: Optional[FakeCollector] = None,
    buzzer=None,
    sleep: Optional[ManualSleep] = None,
) -> SimpleNamespace:
    """
    Real controller, pipeline, roster and reconciler wired to fakes.

    Must be called inside a running event loop when ``sleep`` is used.
    """
    h = SimpleNamespace()
    h.location = FakeLocation(available=location_available)
    h.connectivity = FakeConnectivity(online)
    h.collector = collector or FakeCollector(collector_fails)
    h.gateway = gateway or FakeGateway()
    h.dialer = FakeDialer()
    h.store = store or FakeStore()
    h.contact_store = FakeContactStore(
        contacts if contacts is not None
        else [EmergencyContact("Asha", "+919800000001", "Sister")]
    )
    h.settings_store = FakeSettingsStore(user_settings)
    h.roster = ContactRoster(h.contact_store)
    h.pipeline = DispatchPipeline(h.store, h.connectivity, h.collector, h.gateway)
    h.sleep = sleep or ManualSleep()
    h.timers: List[CountdownTimer] = []

    def timer_factory(seconds, callback):
        timer = CountdownTimer(seconds, callback, sleep=h.sleep)
        h.timers.append(timer)
        return timer

    h.controller = AlertController(
        location=h.location,
        roster=h.roster,
        settings_store=h.settings_store,
        store=h.store,
        pipeline=h.pipeline,
        dialer=h.dialer,
        emergency_number="112",
        buzzer=buzzer,
        timer_factory=timer_factory,
    )
    h.reconciler = PendingAlertReconciler(h.store, h.pipeline)
    return h
