"""
Async SQLAlchemy engine, sessions and connectivity helpers.

PostgreSQL via asyncpg in production; SQLite URLs get no pool sizing so the
same code path serves local runs. Sessions use expire_on_commit=False because
the webhook path commits the call log and the running execution mid-request
and keeps using the loaded rows afterwards.
"""
import logging
from typing import AsyncGenerator
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

_engine = None
_session_factory = None


class Base(DeclarativeBase):
    pass


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        from src.config import get_settings
        settings = get_settings()
        options = {"echo": False}
        if not settings.database_url.startswith("sqlite"):
            options.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_pre_ping=True,
            )
        _engine = create_async_engine(settings.database_url, **options)
    return _engine


def _get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _session_factory


def async_session_factory() -> AsyncSession:
    """A session outside a FastAPI request."""
    return _get_session_factory()()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed unless the handler raised."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.debug("Request session rolled back: %s", str(e))
            await session.rollback()
            raise


async def ping_database(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database ping failed: %s", str(e))
        return False
    return True


async def dispose_engine() -> None:
    """Close pooled connections. No-op when no engine was ever created."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
