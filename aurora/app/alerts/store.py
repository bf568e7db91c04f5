"""
store.py — Durable alert log plus the contact / settings key-value stores.

AlertStore is the only writer of ``sos_alerts`` rows.  Its three core
operations are the ones the controller needs:

    insert(alert)              → id
    list_by_status(status)     → [SOSAlert], newest first
    update_status(id, status)  → None, pending rows only

Every SQLAlchemy failure is re-raised as PersistenceError so callers deal
with one taxonomy; a store whose database never initialised raises
StorageUnavailableError.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from aurora.app.alerts.models import (
    AlertStatus,
    EmergencyContact,
    SOSAlert,
    UserSettings,
    join_numbers,
    split_numbers,
)
from aurora.app.alerts.tables import KeyValueRow, SOSAlertRow
from aurora.app.core.database import Database
from aurora.app.core.errors import (
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

CONTACTS_KEY = "emergency_contacts"
SETTINGS_KEY = "user_settings"


def _row_to_alert(row: SOSAlertRow) -> SOSAlert:
    return SOSAlert(
        id=row.id,
        latitude=row.latitude,
        longitude=row.longitude,
        timestamp=row.timestamp,
        status=AlertStatus(row.status),
        message=row.message or "",
        contact_numbers=split_numbers(row.contact_numbers),
        created_at=row.created_at,
    )


class AlertStore:
    """SQLAlchemy-backed alert log."""

    def __init__(self, db: Database):
        self._db = db

    def _check_ready(self) -> None:
        if not self._db.ready:
            raise StorageUnavailableError(
                f"Alert storage is not initialised: {self._db.init_error or 'init() not run'}"
            )

    async def insert(self, alert: SOSAlert) -> int:
        """Persist a new alert and return its assigned id."""
        self._check_ready()
        row = SOSAlertRow(
            latitude=alert.latitude,
            longitude=alert.longitude,
            timestamp=alert.timestamp,
            status=alert.status.value,
            message=alert.message,
            contact_numbers=join_numbers(alert.contact_numbers),
        )
        try:
            async with self._db.session() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            raise PersistenceError("insert", str(exc)) from exc

        alert.id = row.id
        alert.created_at = row.created_at
        logger.info(
            "Alert %d persisted as %s (%d contacts)",
            row.id, row.status, len(alert.contact_numbers),
            extra={"alert_id": row.id, "status": row.status},
        )
        return row.id

    async def get(self, alert_id: int) -> SOSAlert:
        self._check_ready()
        try:
            async with self._db.session() as session:
                row = await session.get(SOSAlertRow, alert_id)
        except SQLAlchemyError as exc:
            raise PersistenceError("get", str(exc), alert_id=alert_id) from exc
        if row is None:
            raise NotFoundError("Alert", id=alert_id)
        return _row_to_alert(row)

    async def list_by_status(self, status: AlertStatus) -> List[SOSAlert]:
        """All rows with ``status``, newest first."""
        self._check_ready()
        stmt = (
            select(SOSAlertRow)
            .where(SOSAlertRow.status == status.value)
            .order_by(SOSAlertRow.created_at.desc(), SOSAlertRow.id.desc())
        )
        try:
            async with self._db.session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError("list_by_status", str(exc)) from exc
        return [_row_to_alert(r) for r in rows]

    async def list_recent(self, limit: int = 50) -> List[SOSAlert]:
        self._check_ready()
        stmt = (
            select(SOSAlertRow)
            .order_by(SOSAlertRow.created_at.desc(), SOSAlertRow.id.desc())
            .limit(limit)
        )
        try:
            async with self._db.session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError("list_recent", str(exc)) from exc
        return [_row_to_alert(r) for r in rows]

    async def update_status(self, alert_id: int, status: AlertStatus) -> None:
        """
        Move a pending row to ``status``.

        Raises
        ------
        InvalidTransitionError
            The row is already terminal (or ``status`` is PENDING).
        NotFoundError
            No row with that id.
        """
        self._check_ready()
        if status is AlertStatus.PENDING:
            raise InvalidTransitionError(alert_id, "pending", status.value)

        stmt = (
            update(SOSAlertRow)
            .where(SOSAlertRow.id == alert_id)
            .where(SOSAlertRow.status == AlertStatus.PENDING.value)
            .values(status=status.value)
        )
        try:
            async with self._db.session() as session:
                result = await session.execute(stmt)
                await session.commit()
                if result.rowcount == 0:
                    row = await session.get(SOSAlertRow, alert_id)
                    if row is None:
                        raise NotFoundError("Alert", id=alert_id)
                    raise InvalidTransitionError(alert_id, row.status, status.value)
        except SQLAlchemyError as exc:
            raise PersistenceError("update_status", str(exc), alert_id=alert_id) from exc

        logger.info(
            "Alert %d status → %s", alert_id, status.value,
            extra={"alert_id": alert_id, "status": status.value},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Key-value documents (contacts, settings)
# ═══════════════════════════════════════════════════════════════════════════

class KeyValueStore:
    """JSON documents keyed by name, in the same database."""

    def __init__(self, db: Database):
        self._db = db

    async def get_json(self, key: str) -> Optional[Any]:
        if not self._db.ready:
            raise StorageUnavailableError()
        try:
            async with self._db.session() as session:
                row = await session.get(KeyValueRow, key)
        except SQLAlchemyError as exc:
            raise PersistenceError("kv_get", str(exc), key=key) from exc
        return json.loads(row.value) if row is not None else None

    async def set_json(self, key: str, value: Any) -> None:
        if not self._db.ready:
            raise StorageUnavailableError()
        try:
            async with self._db.session() as session:
                row = await session.get(KeyValueRow, key)
                if row is None:
                    session.add(KeyValueRow(key=key, value=json.dumps(value)))
                else:
                    row.value = json.dumps(value)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError("kv_set", str(exc), key=key) from exc


class ContactStore:
    """Persisted emergency roster. ``load`` returns None if never saved."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    async def load(self) -> Optional[List[EmergencyContact]]:
        raw = await self._kv.get_json(CONTACTS_KEY)
        if raw is None:
            return None
        return [EmergencyContact.from_dict(c) for c in raw]

    async def save(self, contacts: List[EmergencyContact]) -> None:
        await self._kv.set_json(CONTACTS_KEY, [c.to_dict() for c in contacts])


class SettingsStore:
    """Persisted UserSettings; defaults are written back on first read."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    async def load(self) -> UserSettings:
        raw = await self._kv.get_json(SETTINGS_KEY)
        if not raw:
            defaults = UserSettings()
            await self.save(defaults)
            return defaults
        return UserSettings.from_dict(raw)

    async def save(self, user_settings: UserSettings) -> None:
        await self._kv.set_json(SETTINGS_KEY, user_settings.to_dict())
