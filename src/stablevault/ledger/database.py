"""Engine and session management for the event store."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from stablevault.config import get_settings
from stablevault.ledger.models import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _resolve_url(url: str) -> str:
    if url.startswith("sqlite:///") and "aiosqlite" not in url:
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    if ":memory:" in url:
        # One shared connection, otherwise every session sees an empty database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

    db_path = url.split(":///", 1)[-1]
    if db_path:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return {}


def get_engine() -> AsyncEngine:
    """Get or create the event store engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = _resolve_url(settings.database_url)
        _engine = create_async_engine(
            url,
            echo=settings.debug and not settings.is_production,
            **_engine_options(url),
        )
        logger.debug(f"Event store engine created for {settings._redact_url(url)}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the event store tables."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
