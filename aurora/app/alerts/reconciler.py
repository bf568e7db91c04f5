"""
reconciler.py — Start-up sweep of alerts left pending by a previous run.

Runs once during application start-up, inside the FastAPI lifespan and
under the controller's lock, so no trigger can race it for the same rows.

    offline  → no-op (the store is not even read)
    online   → for each pending row: network step of the pipeline, using
               the coordinates and contact numbers stored on the row

A cancelled alert is still pending, so it is picked up here as well.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from aurora.app.alerts.models import AlertStatus
from aurora.app.core.errors import SOSError

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    online: bool = False
    pending: int = 0
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "online": self.online,
            "pending": self.pending,
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class PendingAlertReconciler:
    def __init__(self, store, pipeline):
        self.store = store
        self.pipeline = pipeline

    async def run(self, skip_ids: Iterable[int] = ()) -> ReconcileReport:
        """Re-attempt network delivery of every pending row. Never raises."""
        report = ReconcileReport()
        skip = set(skip_ids)

        try:
            report.online = bool(await self.pipeline.connectivity.is_online())
        except Exception as exc:
            logger.warning("Connectivity check failed during reconciliation: %s", exc)
            report.online = False

        if not report.online:
            logger.info("Offline — skipping pending alert reconciliation")
            return report

        try:
            pending = await self.store.list_by_status(AlertStatus.PENDING)
        except SOSError as exc:
            logger.error("Could not list pending alerts: %s", exc.message)
            report.errors.append(exc.message)
            return report

        report.pending = len(pending)
        if not pending:
            return report

        logger.info("Syncing %d pending alerts", len(pending))

        for alert in pending:
            if alert.id is None or alert.id in skip:
                report.skipped += 1
                continue
            report.attempted += 1
            try:
                outcome = await self.pipeline.send_network(alert, alert.contact_numbers)
            except Exception as exc:
                logger.exception("Reconciling alert %s failed", alert.id)
                report.errors.append(f"alert {alert.id}: {exc}")
                continue

            if outcome.status is AlertStatus.SENT:
                report.sent += 1
            elif outcome.status is AlertStatus.FAILED:
                report.failed += 1
            if not outcome.recorded and outcome.error:
                report.errors.append(f"alert {alert.id}: {outcome.error}")

        logger.info(
            "Reconciliation done: %d attempted, %d sent, %d failed",
            report.attempted, report.sent, report.failed,
        )
        return report
