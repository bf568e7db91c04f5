"""
location.py — LocationProvider backed by the last fix the client reported.

The device UI owns the GPS; it posts fixes to ``/api/v1/device/location``.
A fix whose capture time is older than ``max_age_seconds``, or cannot be
read as ISO-8601, is treated as unavailable so an SOS is never sent with a
stale position.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from aurora.app.alerts.models import LocationFix

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LastKnownLocationProvider:
    def __init__(
        self,
        max_age_seconds: float = 300.0,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._fix: Optional[LocationFix] = None

    def update(self, fix: LocationFix) -> None:
        if fix.captured_at() is None:
            raise ValueError(f"Location timestamp is not ISO-8601: {fix.timestamp!r}")
        self._fix = fix
        logger.debug("Location updated: %.5f, %.5f", fix.latitude, fix.longitude)

    @property
    def last_fix(self) -> Optional[LocationFix]:
        return self._fix

    async def get_current_location(self) -> Optional[LocationFix]:
        if self._fix is None:
            logger.warning("No location fix reported yet")
            return None
        captured = self._fix.captured_at()
        if captured is None:
            logger.warning("Last location fix has an unreadable timestamp")
            return None
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=timezone.utc)
        age = (self._clock() - captured).total_seconds()
        if self.max_age_seconds > 0 and age > self.max_age_seconds:
            logger.warning("Last location fix is stale (%.0fs old)", age)
            return None
        return self._fix
