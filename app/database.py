"""
Readiness JTBD — Async engine and sessions for the force store.

Nothing connects at import time: Alembic, the seed script and the unit
tests import the ORM models without a reachable database.  The engine is
created on the first ``get_engine()`` call and shared afterwards.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    settings = get_settings()
    engine = create_async_engine(
        settings.async_database_url,
        echo=settings.LOG_LEVEL.upper() == "DEBUG",
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=1800,
        pool_pre_ping=True,
    )
    logger.info("Force store engine created (pool_size=%d)", settings.DB_POOL_SIZE)
    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions for :class:`~app.services.force_store.SqlForceStore`; one per
    store operation, committed by the caller."""
    return async_sessionmaker(bind=get_engine(), expire_on_commit=False)
