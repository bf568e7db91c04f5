"""
FastAPI route: SOS alert lifecycle.

Provides endpoints to:
    POST /api/v1/sos/trigger     — trigger an SOS (arm or dispatch)
    POST /api/v1/sos/cancel      — cancel an armed countdown
    GET  /api/v1/sos/state       — controller state
    GET  /api/v1/sos/alerts      — recent alerts, optionally by status
    POST /api/v1/sos/reconcile   — re-run pending alert reconciliation
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from aurora.app.alerts.models import AlertStatus
from aurora.app.api.schemas import AlertResponse, ControllerStateResponse, TriggerResponse
from aurora.app.core.errors import SOSError
from aurora.app.dependencies import SOSServices, get_services

router = APIRouter(prefix="/api/v1/sos", tags=["sos"])


def _state_payload(services: SOSServices) -> dict:
    controller = services.controller
    return {
        "state": controller.state.value,
        "active": controller.is_active(),
        "active_alert_id": controller.active_alert_id,
        "countdown_seconds": controller.countdown_seconds,
        "last_outcome": (
            controller.last_outcome.to_dict() if controller.last_outcome else None
        ),
    }


def _parse_status(status: str) -> AlertStatus:
    try:
        return AlertStatus(status.lower())
    except ValueError:
        valid = [s.value for s in AlertStatus]
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status '{status}'. Must be one of: {valid}",
        )


@router.post(
    "/trigger",
    response_model=TriggerResponse,
    summary="Trigger an SOS alert",
    description=(
        "Captures the last location fix and the emergency roster, persists a "
        "pending alert, then either arms the cancel countdown or dispatches "
        "immediately (timer disabled or 0)."
    ),
)
async def trigger_sos(services: SOSServices = Depends(get_services)):
    controller = services.controller
    if not await controller.trigger():
        raise controller.last_error or SOSError("SOS trigger failed")
    return TriggerResponse(triggered=True, **_state_payload(services))


@router.post(
    "/cancel",
    response_model=ControllerStateResponse,
    summary="Cancel an armed SOS countdown",
)
async def cancel_sos(services: SOSServices = Depends(get_services)):
    controller = services.controller
    if not await controller.cancel():
        raise controller.last_error or SOSError("SOS cancel failed")
    return ControllerStateResponse(**_state_payload(services))


@router.get("/state", response_model=ControllerStateResponse)
async def sos_state(services: SOSServices = Depends(get_services)):
    return ControllerStateResponse(**_state_payload(services))


@router.get(
    "/alerts",
    response_model=List[AlertResponse],
    summary="List stored alerts",
    description="Most recent first. Filter with ?status=pending|sent|failed.",
)
async def list_alerts(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    services: SOSServices = Depends(get_services),
):
    if status:
        alerts = await services.store.list_by_status(_parse_status(status))
        alerts = alerts[:limit]
    else:
        alerts = await services.store.list_recent(limit)
    return [AlertResponse(**a.to_dict()) for a in alerts]


@router.post("/reconcile", summary="Retry pending alerts now")
async def reconcile(services: SOSServices = Depends(get_services)):
    report = await services.controller.reconcile_pending(services.reconciler)
    return report.to_dict()
