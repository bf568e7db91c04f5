"""
Pydantic schemas for the SOS API.

Separated from the route handlers so they are reusable across the codebase
(route modules, tests).  Domain objects stay dataclasses; these models only
validate input and shape responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from aurora.app.alerts.timer import MAX_SECONDS


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LocationInput(BaseModel):
    """A device fix reported by the client."""
    latitude: float = Field(..., ge=-90.0, le=90.0, examples=[12.9716])
    longitude: float = Field(..., ge=-180.0, le=180.0, examples=[77.5946])
    timestamp: Optional[datetime] = Field(
        None,
        description="ISO-8601 capture instant; defaults to receipt time",
        examples=["2026-10-18T09:30:00+00:00"],
    )
    accuracy: Optional[float] = Field(None, ge=0.0, examples=[12.5])


class ContactInput(BaseModel):
    name: str = Field(..., min_length=1, examples=["Asha"])
    phone: str = Field(..., min_length=1, max_length=32, examples=["+919876543210"])
    relationship: str = Field("", examples=["Sister"])


class SettingsInput(BaseModel):
    """
    Timer seconds outside [5, 300] are accepted and clamped at use;
    0 means dispatch immediately.
    """
    timer_enabled: bool = Field(False)
    timer_seconds: int = Field(30, ge=0, le=10 * MAX_SECONDS, examples=[30])
    play_buzzer_on_sos: bool = Field(False)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ControllerStateResponse(BaseModel):
    state: str
    active: bool
    active_alert_id: Optional[int] = None
    countdown_seconds: Optional[int] = None
    last_outcome: Optional[Dict[str, Any]] = None


class TriggerResponse(ControllerStateResponse):
    triggered: bool = True


class AlertResponse(BaseModel):
    id: Optional[int]
    latitude: float
    longitude: float
    timestamp: str
    status: str
    message: str
    contact_numbers: str
    created_at: Optional[str] = None


class ContactResponse(BaseModel):
    name: str
    phone: str
    relationship: str


class RosterResponse(BaseModel):
    contacts: List[ContactResponse]
    count: int
