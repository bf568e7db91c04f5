"""
dispatch.py — Network-vs-SMS delivery decision and outcome recording.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │ 1. Connectivity     │  oracle error → offline
    └─────────┬───────────┘
       online │         offline
              ▼            └──────────────────────────────┐
    ┌─────────────────────┐                               ▼
    │ 2. POST collector   │                     ┌─────────────────────┐
    └─────────┬───────────┘                     │ 3. SMS broadcast    │
      ok      │      error                      └─────────┬───────────┘
       ▼      ▼                                           ▼
     SENT   FAILED ──► SMS broadcast (status stays FAILED) SENT

When the network was available the stored status describes *network*
delivery.  The offline branch records SENT once SMS was attempted, whatever
the per-number results.

═══════════════════════════════════════════════════════════════════════════
FAILURE CONTAINMENT
═══════════════════════════════════════════════════════════════════════════

    • The pipeline never raises.  Everything is folded into DispatchOutcome.
    • A status write failure never suppresses the SMS fallback; the outcome
      is returned with recorded=False.
    • An unexpected exception still ends in an SMS broadcast if none was
      sent yet.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from aurora.app.alerts.channels.sms_gateway import format_sos_sms
from aurora.app.alerts.models import (
    AlertStatus,
    DispatchOutcome,
    DispatchPath,
    SmsResult,
    SOSAlert,
)
from aurora.app.core.errors import NetworkSendError, SOSError

logger = logging.getLogger(__name__)


class DispatchPipeline:
    """
    Parameters
    ----------
    store : AlertStore
        Receives the terminal status write.
    connectivity : ConnectivityOracle
        ``await is_online() -> bool``
    collector : CollectorClient
        ``await send(alert)``; raises NetworkSendError.
    gateway : SmsGateway
        ``await send_broadcast(numbers, text) -> [SmsResult]``; never raises.
    """

    def __init__(self, store, connectivity, collector, gateway):
        self.store = store
        self.connectivity = connectivity
        self.collector = collector
        self.gateway = gateway

    async def _is_online(self) -> bool:
        try:
            return bool(await self.connectivity.is_online())
        except Exception as exc:
            logger.warning("Connectivity check failed, assuming offline: %s", exc)
            return False

    async def dispatch(self, alert: SOSAlert, numbers: List[str]) -> DispatchOutcome:
        """Full pipeline for a freshly persisted alert."""
        outcome = DispatchOutcome(alert_id=alert.id, path=DispatchPath.OFFLINE_SMS)
        try:
            if await self._is_online():
                logger.info(
                    "Online — sending alert %s to collector", alert.id,
                    extra={"alert_id": alert.id},
                )
                return await self.send_network(alert, numbers)

            logger.info(
                "Offline — sending emergency SMS for alert %s directly", alert.id,
                extra={"alert_id": alert.id},
            )
            outcome.sms_results = await self.broadcast_sms(alert, numbers)
            await self._record(alert, outcome, AlertStatus.SENT)
        except Exception as exc:
            logger.exception("Dispatch of alert %s failed unexpectedly", alert.id)
            outcome.error = str(exc)
            if not outcome.sms_results:
                outcome.sms_results = await self.broadcast_sms(alert, numbers)

        outcome.completed_at = datetime.now(timezone.utc)
        return outcome

    async def send_network(self, alert: SOSAlert, numbers: List[str]) -> DispatchOutcome:
        """
        Network step alone: POST, then SENT, or FAILED plus SMS fallback.

        Also used by the reconciler for rows left pending by a previous run.
        """
        outcome = DispatchOutcome(alert_id=alert.id, path=DispatchPath.NETWORK)
        try:
            await self.collector.send(alert)
        except NetworkSendError as exc:
            await self._fallback(alert, numbers, outcome, exc.message)
        except Exception as exc:
            logger.exception("Collector send for alert %s raised", alert.id)
            await self._fallback(alert, numbers, outcome, str(exc))
        else:
            await self._record(alert, outcome, AlertStatus.SENT)

        outcome.completed_at = datetime.now(timezone.utc)
        return outcome

    async def _fallback(
        self, alert: SOSAlert, numbers: List[str], outcome: DispatchOutcome, reason: str,
    ) -> None:
        outcome.path = DispatchPath.NETWORK_FAILED_SMS
        outcome.error = reason
        logger.warning(
            "Network send failed for alert %s (%s) — falling back to SMS",
            alert.id, reason, extra={"alert_id": alert.id},
        )
        await self._record(alert, outcome, AlertStatus.FAILED)
        outcome.sms_results = await self.broadcast_sms(alert, numbers)

    async def broadcast_sms(self, alert: SOSAlert, numbers: List[str]) -> List[SmsResult]:
        """Same text to every number; failures are logged only."""
        text = format_sos_sms(alert.latitude, alert.longitude, alert.timestamp)
        try:
            results = await self.gateway.send_broadcast(list(numbers), text)
        except Exception as exc:
            logger.error("SMS broadcast for alert %s failed: %s", alert.id, exc)
            return [SmsResult(phone=n, delivered=False, error=str(exc)) for n in numbers]

        for r in results:
            if not r.delivered:
                logger.warning(
                    "SMS to %s not delivered for alert %s: %s",
                    r.phone, alert.id, r.error,
                    extra={"alert_id": alert.id, "channel": "sms"},
                )
        return results

    async def _record(
        self, alert: SOSAlert, outcome: DispatchOutcome, status: AlertStatus,
    ) -> None:
        try:
            await self.store.update_status(alert.id, status)
        except SOSError as exc:
            logger.error(
                "Could not record %s for alert %s: %s",
                status.value, alert.id, exc.message,
                extra={"alert_id": alert.id, "status": status.value},
            )
            outcome.recorded = False
            outcome.error = f"{outcome.error}; {exc.message}" if outcome.error else exc.message
            return

        alert.status = status
        outcome.status = status
        outcome.recorded = True
