"""
controller.py — The SOS alert state machine.

═══════════════════════════════════════════════════════════════════════════
TRIGGER FLOW
═══════════════════════════════════════════════════════════════════════════

    trigger()
      │  state in flight?              → AlreadyActive, False
      │  location fix?                 → LocationUnavailable, False
      │  reload roster, empty?         → NoContacts, False
      │  read settings, (buzzer)
      │  persist PENDING row           → PersistenceError, False
      │
      ├─ no countdown ─► DISPATCHING ─► pipeline ─► RESOLVED ─► IDLE
      │
      └─ countdown ───► ARMED_COUNTDOWN, start timer, return True
                             │
                 cancel() ───┤──► CANCELLED ─► IDLE   (row stays PENDING)
                             │
                 expiry  ────┴──► DISPATCHING ─► pipeline ─► RESOLVED ─► IDLE
                                                      └─► backup call

The row is persisted PENDING before any delivery attempt; rows left behind
by a process that died mid-dispatch are picked up by the reconciler.

All store and pipeline access (trigger, expiry, reconciliation) runs under
one asyncio.Lock.  The state enum is the single-in-flight guard and is
checked both before and after the lock is acquired.  Public operations
never raise: they return False and leave the reason on ``last_error``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from aurora.app.alerts.models import (
    ControllerState,
    DispatchOutcome,
    SOSAlert,
)
from aurora.app.alerts.timer import CountdownTimer, clamp_seconds
from aurora.app.core.errors import (
    AlreadyActiveError,
    LocationUnavailableError,
    NoContactsError,
    NotArmedError,
    PersistenceError,
    SOSError,
)

logger = logging.getLogger(__name__)


class AlertController:
    """
    Orchestrates trigger → countdown → dispatch → cancellation.

    Parameters
    ----------
    location : LocationProvider
    roster : ContactRoster
    settings_store : SettingsStore
    store : AlertStore
    pipeline : DispatchPipeline
    dialer : VoiceDialer
        Backup call placed on countdown expiry.
    emergency_number : str
    message : str
        Free-text message stored on every alert.
    buzzer : optional, ``await play()``
    timer_factory : callable(seconds, callback) -> CountdownTimer
    """

    def __init__(
        self,
        *,
        location,
        roster,
        settings_store,
        store,
        pipeline,
        dialer,
        emergency_number: str = "112",
        message: str = "SOS Alert - Emergency situation",
        buzzer=None,
        timer_factory: Callable[..., CountdownTimer] = CountdownTimer,
    ):
        self.location = location
        self.roster = roster
        self.settings_store = settings_store
        self.store = store
        self.pipeline = pipeline
        self.dialer = dialer
        self.emergency_number = emergency_number
        self.message = message
        self.buzzer = buzzer
        self._timer_factory = timer_factory

        self._lock = asyncio.Lock()
        self._state = ControllerState.IDLE
        self._timer: Optional[CountdownTimer] = None
        self._alert: Optional[SOSAlert] = None
        self._numbers: list = []

        self.last_error: Optional[SOSError] = None
        self.last_outcome: Optional[DispatchOutcome] = None

    # ── Introspection ──

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    @property
    def active_alert_id(self) -> Optional[int]:
        return self._alert.id if self._alert is not None else None

    @property
    def countdown_seconds(self) -> Optional[int]:
        return self._timer.seconds if self._timer is not None and self._timer.active else None

    def is_active(self) -> bool:
        return self._state.in_flight

    def _transition(self, new_state: ControllerState) -> None:
        logger.debug("State %s → %s", self._state.value, new_state.value)
        self._state = new_state

    def _finish(self, terminal: ControllerState) -> None:
        """CANCELLED / RESOLVED fall straight back to IDLE."""
        self._transition(terminal)
        self._transition(ControllerState.IDLE)
        self._alert = None
        self._numbers = []
        self._timer = None

    def _fail(self, error: SOSError) -> bool:
        self.last_error = error
        logger.warning("SOS trigger rejected: %s", error.message)
        return False

    # ── Operations ──

    async def trigger(self) -> bool:
        """Start an SOS cycle. True if armed or dispatched."""
        if self._state.in_flight:
            return self._fail(AlreadyActiveError(self._state.value))

        async with self._lock:
            if self._state is not ControllerState.IDLE:
                return self._fail(AlreadyActiveError(self._state.value))
            self.last_error = None
            try:
                return await self._trigger_locked()
            except SOSError as exc:
                self._reset_after_error()
                return self._fail(exc)
            except Exception as exc:
                logger.exception("SOS trigger failed unexpectedly")
                self._reset_after_error()
                return self._fail(SOSError(f"SOS trigger failed: {exc}"))

    def _reset_after_error(self) -> None:
        if self._state is not ControllerState.ARMED_COUNTDOWN:
            self._state = ControllerState.IDLE
            self._alert = None
            self._numbers = []

    async def _trigger_locked(self) -> bool:
        fix = await self.location.get_current_location()
        if fix is None:
            raise LocationUnavailableError()

        await self.roster.load()
        numbers = self.roster.snapshot()
        if not numbers:
            raise NoContactsError()

        user_settings = await self.settings_store.load()

        if user_settings.play_buzzer_on_sos and self.buzzer is not None:
            try:
                await self.buzzer.play()
            except Exception as exc:
                logger.error("Failed to play buzzer sound: %s", exc)

        alert = SOSAlert.from_fix(fix, self.message, numbers)
        await self.store.insert(alert)
        self._alert = alert
        self._numbers = numbers

        seconds = clamp_seconds(user_settings.timer_seconds)
        if not user_settings.timer_enabled or seconds == 0:
            logger.info(
                "Timer disabled or zero — dispatching alert %s immediately", alert.id,
                extra={"alert_id": alert.id},
            )
            self._transition(ControllerState.DISPATCHING)
            outcome = await self.pipeline.dispatch(alert, numbers)
            self.last_outcome = outcome
            self._finish(ControllerState.RESOLVED)
            if not outcome.recorded:
                raise PersistenceError(
                    "update_status", outcome.error or "status not recorded",
                    alert_id=alert.id,
                )
            return True

        self._timer = self._timer_factory(seconds, self._on_expiry)
        self._transition(ControllerState.ARMED_COUNTDOWN)
        self._timer.start()
        logger.info(
            "Alert %s armed: dispatch in %ds unless cancelled", alert.id, seconds,
            extra={"alert_id": alert.id, "state": self._state.value},
        )
        return True

    async def cancel(self) -> bool:
        """Abort an armed countdown. The pending row is left untouched."""
        if self._state is not ControllerState.ARMED_COUNTDOWN or self._timer is None:
            self.last_error = NotArmedError(self._state.value)
            return False
        if not self._timer.cancel():
            # Expired already; dispatch is (about to be) in flight
            self.last_error = NotArmedError(ControllerState.DISPATCHING.value)
            return False

        alert_id = self.active_alert_id
        self._finish(ControllerState.CANCELLED)
        self.last_error = None
        logger.info(
            "SOS cancelled by user; alert %s left pending", alert_id,
            extra={"alert_id": alert_id},
        )
        return True

    async def _on_expiry(self) -> None:
        logger.info("SOS countdown expired — executing SOS")
        async with self._lock:
            alert, numbers = self._alert, self._numbers
            if self._state is not ControllerState.ARMED_COUNTDOWN or alert is None:
                return
            self._transition(ControllerState.DISPATCHING)
            try:
                self.last_outcome = await self.pipeline.dispatch(alert, numbers)
            finally:
                self._finish(ControllerState.RESOLVED)

        if not await self.dialer.dial(self.emergency_number):
            logger.error("Failed to auto-dial %s", self.emergency_number)
        else:
            logger.info("Auto-dialed %s after SOS timer expired", self.emergency_number)

    # ── Lifecycle helpers ──

    async def join(self) -> None:
        """Wait for a running countdown to fire (and dispatch) or be cancelled."""
        timer = self._timer
        if timer is not None:
            await timer.wait()

    async def reconcile_pending(self, reconciler):
        """Run the reconciler under the lock, skipping the in-flight row."""
        async with self._lock:
            skip = {self.active_alert_id} if self.active_alert_id is not None else set()
            return await reconciler.run(skip_ids=skip)

    async def shutdown(self) -> None:
        """Stop an armed countdown on process exit; the row stays pending."""
        if self._state is ControllerState.ARMED_COUNTDOWN and self._timer is not None:
            alert_id = self.active_alert_id
            if self._timer.cancel():
                self._finish(ControllerState.CANCELLED)
                logger.warning(
                    "Shutdown with armed alert %s; left pending for reconciliation",
                    alert_id, extra={"alert_id": alert_id},
                )
        else:
            await self.join()
