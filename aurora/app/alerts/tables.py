"""
ORM tables for the alert store and the device key-value store.

═══════════════════════════════════════════════════════════════════════════
DATABASE SCHEMA
═══════════════════════════════════════════════════════════════════════════

Table: sos_alerts
─────────────────────────────────────────────────────────────────────────────
| Column           | Type        | Description                              |
|------------------|-------------|------------------------------------------|
| id               | INTEGER PK  | Auto-increment, assigned on insert       |
| latitude         | REAL        | Exact latitude at capture                |
| longitude        | REAL        | Exact longitude at capture               |
| timestamp        | TEXT        | ISO-8601 capture instant                 |
| status           | TEXT        | pending / sent / failed                  |
| message          | TEXT        | Free text                                |
| contact_numbers  | TEXT        | Comma-joined roster snapshot             |
| created_at       | DATETIME    | Row creation time (listing order)        |
─────────────────────────────────────────────────────────────────────────────

Table: kv_store
─────────────────────────────────────────────────────────────────────────────
| key              | TEXT PK     | e.g. "emergency_contacts"                |
| value            | TEXT        | JSON document                            |
| updated_at       | DATETIME    | Last write                               |
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from aurora.app.core.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SOSAlertRow(Base):
    __tablename__ = "sos_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    message: Mapped[str] = mapped_column(Text, nullable=True)
    contact_numbers: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_now)

    __table_args__ = (
        Index("ix_sos_alerts_status_created", "status", "created_at"),
    )


class KeyValueRow(Base):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_now, onupdate=_now,
    )
