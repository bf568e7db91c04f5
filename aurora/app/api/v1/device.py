"""
FastAPI route: device-side inputs the SOS controller consumes.

    POST /api/v1/device/location  — report the latest GPS fix
    GET  /api/v1/device/settings  — read SOS settings
    PUT  /api/v1/device/settings  — write SOS settings
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from aurora.app.alerts.models import LocationFix, UserSettings
from aurora.app.alerts.timer import clamp_seconds
from aurora.app.api.schemas import LocationInput, SettingsInput
from aurora.app.dependencies import SOSServices, get_services

router = APIRouter(prefix="/api/v1/device", tags=["device"])


@router.post("/location", status_code=202)
async def report_location(body: LocationInput, services: SOSServices = Depends(get_services)):
    captured = body.timestamp or datetime.now(timezone.utc)
    if captured.tzinfo is None:
        captured = captured.replace(tzinfo=timezone.utc)
    fix = LocationFix(
        latitude=body.latitude,
        longitude=body.longitude,
        timestamp=captured.isoformat(),
        accuracy=body.accuracy,
    )
    services.location.update(fix)
    return {"accepted": True, "fix": fix.to_dict()}


def _settings_payload(user_settings: UserSettings) -> dict:
    return {
        **user_settings.to_dict(),
        "effective_timer_seconds": (
            clamp_seconds(user_settings.timer_seconds)
            if user_settings.timer_enabled else 0
        ),
    }


@router.get("/settings")
async def read_settings(services: SOSServices = Depends(get_services)):
    return _settings_payload(await services.settings_store.load())


@router.put("/settings")
async def write_settings(body: SettingsInput, services: SOSServices = Depends(get_services)):
    user_settings = UserSettings(
        timer_enabled=body.timer_enabled,
        timer_seconds=body.timer_seconds,
        play_buzzer_on_sos=body.play_buzzer_on_sos,
    )
    await services.settings_store.save(user_settings)
    return _settings_payload(user_settings)
