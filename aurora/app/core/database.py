"""
Database layer — async SQLite via SQLAlchemy 2.0 + aiosqlite.

Provides:
    • Async engine and session factory
    • Base model for ORM entities
    • Explicit initialisation state (ready / degraded)

A failed ``init()`` does not raise: the app keeps running in a degraded,
non-functional state that the health probe and the alert controller both
report, instead of crashing the process.

Usage:
    from aurora.app.core.database import Database

    db = Database("sqlite+aiosqlite:///./aurora_safety.db")
    await db.init()
    async with db.session() as session:
        ...
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from aurora.app.core.config import settings

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


class Database:
    """Owns one async engine and its session factory."""

    def __init__(self, url: Optional[str] = None, *, echo: Optional[bool] = None):
        self.url = url or settings.DATABASE_URL
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=settings.DATABASE_ECHO if echo is None else echo,
            future=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.ready = False
        self.init_error: Optional[str] = None

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def init(self) -> bool:
        """Create all tables. Returns False (degraded) instead of raising."""
        # Register ORM tables on Base.metadata
        from aurora.app.alerts import tables  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as exc:
            self.ready = False
            self.init_error = str(exc)
            logger.error("Database initialisation failed: %s", exc)
            return False

        self.ready = True
        self.init_error = None
        logger.info("Database tables initialised (%s)", self.safe_url)
        return True

    async def ping(self) -> bool:
        """SELECT 1 round-trip."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    @property
    def safe_url(self) -> str:
        return self.url.split("@")[-1]

    async def close(self) -> None:
        """Dispose engine connections."""
        await self.engine.dispose()
        logger.info("Database connections closed")
