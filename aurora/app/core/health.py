"""
Health check aggregation — deep health probe for the SOS subsystems.

Checks:
    • Alert database (schema initialised, SELECT 1 round-trip)
    • Pending alert backlog (rows still awaiting delivery)
    • SMS gateway configuration
    • Network collector endpoint
    • Controller state

Storage that failed to initialise is reported UNHEALTHY: alerts cannot be
persisted, so the service must not look ready.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from aurora.app.alerts.models import AlertStatus
from aurora.app.core.config import settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


async def check_database(db) -> ComponentHealth:
    comp = ComponentHealth(name="database", details={"url": db.safe_url})
    start = time.monotonic()
    if not db.ready:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Storage not initialised: {db.init_error or 'unknown error'}"
    elif await db.ping():
        comp.message = "Connection available"
    else:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "SELECT 1 failed"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_pending_backlog(db, store) -> ComponentHealth:
    """Pending rows are alerts the reconciler has yet to deliver."""
    comp = ComponentHealth(name="pending_alerts")
    start = time.monotonic()
    if not db.ready:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Storage unavailable"
    else:
        try:
            pending = await store.list_by_status(AlertStatus.PENDING)
            comp.details = {"pending": len(pending)}
            if pending:
                comp.status = HealthStatus.DEGRADED
                comp.message = f"{len(pending)} alert(s) awaiting delivery"
            else:
                comp.message = "No undelivered alerts"
        except Exception as e:
            comp.status = HealthStatus.DEGRADED
            comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_sms_gateway(gateway) -> ComponentHealth:
    comp = ComponentHealth(name="sms_gateway")
    provider = getattr(gateway, "provider", "custom")
    comp.details = {"provider": provider}
    if gateway.is_available():
        comp.message = "SMS fallback available"
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = f"SMS provider '{provider}' not configured"
    return comp


async def check_collector(collector) -> ComponentHealth:
    comp = ComponentHealth(name="collector")
    url = getattr(collector, "url", "")
    comp.details = {"url": url}
    comp.message = "Collector configured"
    if "your-backend-api.com" in url:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Collector URL is the placeholder; network sends will fall back to SMS"
    return comp


async def check_controller(controller) -> ComponentHealth:
    comp = ComponentHealth(name="controller")
    comp.details = {"state": controller.state.value}
    if controller.active_alert_id is not None:
        comp.details["active_alert_id"] = controller.active_alert_id
    comp.message = "SOS in progress" if controller.is_active() else "Idle"
    return comp


async def run_health_check(services) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    checks = [
        check_database(services.db),
        check_pending_backlog(services.db, services.store),
        check_sms_gateway(services.gateway),
        check_collector(services.collector),
        check_controller(services.controller),
    ]

    for coro in checks:
        comp = await coro
        report.components.append(comp)

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
