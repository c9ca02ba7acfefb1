"""
Database engine and sessions.

The engine is created lazily on first use so tests can point DATABASE_URL at
SQLite before anything connects. Services commit explicitly; get_db only
commits what a handler left pending.
"""
import time
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from studyshala.core.config import settings

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_async_session_local: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """Plain postgresql:// URLs are routed to the asyncpg driver"""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def _engine_options(db_url: str) -> Dict[str, Any]:
    # SQLite and development PostgreSQL skip pooling
    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": NullPool}
    if settings.is_dev_mode():
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        db_url = get_database_url()
        _engine = create_async_engine(db_url, echo=settings.DB_ECHO, **_engine_options(db_url))
    return _engine


def get_session_local() -> async_sessionmaker[AsyncSession]:
    global _async_session_local
    if _async_session_local is None:
        _async_session_local = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_local


def AsyncSessionLocal() -> AsyncSession:
    """Standalone session for scripts and background work"""
    return get_session_local()()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits leftovers, rolls back on error"""
    async with get_session_local()() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> float:
    """Round-trip SELECT 1; returns latency in milliseconds"""
    start = time.perf_counter()
    async with get_session_local()() as session:
        await session.execute(text("SELECT 1"))
    return round((time.perf_counter() - start) * 1000, 2)


async def init_db():
    # Importing the models registers their tables on Base.metadata
    import studyshala.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    global _engine, _async_session_local
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_local = None
