"""Async engine, sessions and schema bootstrap for the link store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from xauth_link.config import Settings
from xauth_link.models.db import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(database_url: str) -> dict[str, Any]:
    # SQLite (local runs, tests) has no server connections to check or pool.
    if make_url(database_url).get_backend_name() == "sqlite":
        return {}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5}


def init_engine(settings: Settings) -> None:
    """Create the process-wide engine and session factory for *settings*."""
    global _engine, _session_factory

    _engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))
    _session_factory = async_sessionmaker(bind=_engine, expire_on_commit=False)


def _require_engine() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    if _engine is None or _session_factory is None:
        raise RuntimeError("Database engine not initialised. Call init_engine() first.")
    return _engine, _session_factory


async def create_schema() -> None:
    """Create missing tables. Deployed databases are migrated with Alembic instead."""
    engine, _ = _require_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def shutdown_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request: CLI commands and interaction follow-ups."""
    _, factory = _require_engine()
    async with factory() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields a database session."""
    async with session_scope() as session:
        yield session
