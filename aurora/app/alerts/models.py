"""
models.py — Shared data structures for the SOS alert lifecycle.

Defines:
    • AlertStatus     — durable row status (pending / sent / failed)
    • ControllerState — in-memory state of the alert controller
    • DispatchPath    — which delivery branch the pipeline took
    • SOSAlert        — one emergency notification record
    • EmergencyContact / UserSettings / LocationFix
    • SmsResult / DispatchOutcome — per-pass delivery records

═══════════════════════════════════════════════════════════════════════════
STATUS TRANSITIONS
═══════════════════════════════════════════════════════════════════════════

    PENDING ──► SENT
       │
       └──────► FAILED

Transitions are one-way.  A retried alert (startup reconciliation) is the
same row re-updated while it is still PENDING; a terminal row is never
reopened.

═══════════════════════════════════════════════════════════════════════════
CONTROLLER STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

    IDLE ──trigger(timer)──► ARMED_COUNTDOWN ──expiry──► DISPATCHING
     ▲                            │                          │
     │                          cancel                    done
     │                            ▼                          ▼
     └────────────────────── CANCELLED                   RESOLVED
     └───────────────────────────┴───────────────────────────┘
                         (both fall straight back to IDLE)

    trigger(no timer) runs IDLE ──► DISPATCHING ──► RESOLVED ──► IDLE
    inside the call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class AlertStatus(str, Enum):
    """Durable alert row status."""
    PENDING = "pending"
    SENT    = "sent"
    FAILED  = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not AlertStatus.PENDING


class ControllerState(str, Enum):
    """In-memory alert controller state."""
    IDLE            = "idle"
    ARMED_COUNTDOWN = "armed_countdown"
    DISPATCHING     = "dispatching"
    CANCELLED       = "cancelled"
    RESOLVED        = "resolved"

    @property
    def in_flight(self) -> bool:
        return self in (ControllerState.ARMED_COUNTDOWN, ControllerState.DISPATCHING)


class DispatchPath(str, Enum):
    """Delivery branch taken by one pipeline pass."""
    NETWORK            = "network"              # collector accepted
    NETWORK_FAILED_SMS = "network_failed_sms"   # collector failed → SMS fallback
    OFFLINE_SMS        = "offline_sms"          # no network → SMS only


def _now() -> datetime:
    return datetime.now(timezone.utc)


def join_numbers(numbers: List[str]) -> str:
    """Wire / storage form of a contact list: comma-joined."""
    return ",".join(numbers)


def split_numbers(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [n.strip() for n in raw.split(",") if n.strip()]


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class LocationFix:
    """A device position; timestamp is the ISO-8601 capture instant."""
    latitude: float
    longitude: float
    timestamp: str = field(default_factory=lambda: _now().isoformat())
    accuracy: Optional[float] = None

    def captured_at(self) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "accuracy": self.accuracy,
        }


@dataclass
class EmergencyContact:
    """
    One roster entry.

    Attributes
    ----------
    name : str
    phone : str
        Unique key within the roster.
    relationship : str
    """
    name: str
    phone: str
    relationship: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "relationship": self.relationship,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmergencyContact":
        return cls(
            name=str(data.get("name", "")),
            phone=str(data["phone"]),
            relationship=str(data.get("relationship", "")),
        )


DEFAULT_CONTACTS: List[EmergencyContact] = [
    EmergencyContact(name="Police", phone="112", relationship="Emergency"),
    EmergencyContact(name="Ambulance", phone="108", relationship="Emergency"),
]


@dataclass
class UserSettings:
    """
    User-owned SOS preferences, consumed read-only by the controller.

    ``timer_seconds`` is stored as the user entered it; the countdown
    clamps it at use (see ``timer.clamp_seconds``).
    """
    timer_enabled: bool = False
    timer_seconds: int = 30
    play_buzzer_on_sos: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timer_enabled": self.timer_enabled,
            "timer_seconds": self.timer_seconds,
            "play_buzzer_on_sos": self.play_buzzer_on_sos,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        defaults = cls()
        seconds = data.get("timer_seconds")
        return cls(
            timer_enabled=bool(data.get("timer_enabled", defaults.timer_enabled)),
            timer_seconds=int(seconds) if seconds is not None else defaults.timer_seconds,
            play_buzzer_on_sos=bool(
                data.get("play_buzzer_on_sos", defaults.play_buzzer_on_sos)
            ),
        )


@dataclass
class SOSAlert:
    """
    One emergency notification record.

    ``id`` is None until the alert store assigns one on insert.
    ``contact_numbers`` is the roster snapshot taken at trigger time.
    """
    latitude: float
    longitude: float
    timestamp: str
    message: str = ""
    contact_numbers: List[str] = field(default_factory=list)
    status: AlertStatus = AlertStatus.PENDING
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_fix(
        cls, fix: LocationFix, message: str, contact_numbers: List[str],
    ) -> "SOSAlert":
        return cls(
            latitude=fix.latitude,
            longitude=fix.longitude,
            timestamp=fix.timestamp,
            message=message,
            contact_numbers=list(contact_numbers),
        )

    def to_wire(self) -> Dict[str, Any]:
        """Collector request body. Always reports ``pending`` outbound."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "status": AlertStatus.PENDING.value,
            "message": self.message,
            "contact_numbers": join_numbers(self.contact_numbers),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "message": self.message,
            "contact_numbers": join_numbers(self.contact_numbers),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SmsResult:
    """Best-effort outcome of one SMS to one number."""
    phone: str
    delivered: bool
    error: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"phone": self.phone, "delivered": self.delivered, "error": self.error}


@dataclass
class DispatchOutcome:
    """Record of one pass through the dispatch pipeline."""
    alert_id: Optional[int]
    path: DispatchPath
    status: Optional[AlertStatus] = None      # status written, None if write failed
    recorded: bool = False
    sms_results: List[SmsResult] = field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @property
    def sms_attempted(self) -> bool:
        return self.path is not DispatchPath.NETWORK

    @property
    def sms_delivered(self) -> int:
        return sum(1 for r in self.sms_results if r.delivered)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "path": self.path.value,
            "status": self.status.value if self.status else None,
            "recorded": self.recorded,
            "sms_results": [r.to_dict() for r in self.sms_results],
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }
