# 📂 backend/fulfillment/database.py — engine, sessions, startup/shutdown hooks
# -----------------------------------------------------------------------------
# This module is responsible for:
#   • Building the async SQLAlchemy engine (PostgreSQL/Supabase, asyncpg driver).
#   • Pool settings (pool_size, max_overflow, pre_ping).
#   • Session factory and helpers for FastAPI:
#       - get_session()     — Depends for routes (commit/rollback/close per request).
#       - session_scope()   — transactional context manager for scripts.
#   • Startup/Shutdown hooks: on_startup_init_db(), on_shutdown_dispose().
#
# Notes:
#   • The tables belong to the storefront; this service only reads orders/products/
#     configs/settings and updates two order columns. create_all() is available
#     behind DB_CREATE_TABLES for local databases only.
#   • Keep the pool small on serverless hosts.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings, normalize_dsn
from .utils import get_logger

logger = get_logger("storeskull.db")

# -----------------------------------------------------------------------------
# Process-wide singletons (one per worker)
# -----------------------------------------------------------------------------
_engine: Optional[AsyncEngine] = None
_SessionFactory: Optional[async_sessionmaker[AsyncSession]] = None


def _build_database_url() -> str:
    s = get_settings()
    url = s.DATABASE_URL or s.DATABASE_URL_LOCAL
    if not url:
        raise RuntimeError(
            "DATABASE_URL is empty and DATABASE_URL_LOCAL is not provided in settings."
        )
    return normalize_dsn(url)


def get_engine() -> AsyncEngine:
    """
    Lazy AsyncEngine + session factory initialisation.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        return _engine

    s = get_settings()
    _engine = create_async_engine(
        _build_database_url(),
        echo=s.DB_ECHO,
        pool_pre_ping=True,
        pool_size=s.DB_POOL_SIZE,
        max_overflow=s.DB_MAX_OVERFLOW,
    )

    # autoflush=False — flush by hand; expire_on_commit=False — objects stay usable after commit
    _SessionFactory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    return _engine


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Session-as-transaction:
        async with session_scope() as db:
            ...
    Commits on success, rolls back on error, always closes.
    """
    if _SessionFactory is None:
        get_engine()

    assert _SessionFactory is not None, "Session factory is not initialized"
    session = _SessionFactory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: a fresh session per request.
        @router.post("/x")
        async def x(db: AsyncSession = Depends(get_session)): ...
    """
    async with session_scope() as session:
        yield session


async def check_db_connection(engine: Optional[AsyncEngine] = None) -> bool:
    """SELECT 1. True when the database answers."""
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("DB health check failed: %s", e)
        return False


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """create_all() for local databases (DB_CREATE_TABLES=true)."""
    from .models import Base

    engine = engine or get_engine()
    s = get_settings()
    async with engine.begin() as conn:
        if s.DB_SCHEMA != "public":
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{s.DB_SCHEMA}"'))
        await conn.run_sync(Base.metadata.create_all)


async def on_startup_init_db() -> None:
    """
    Called from main.py on startup:
      1) lazy engine/factory init,
      2) optional create_all (DB_CREATE_TABLES),
      3) health check — raises on failure so the platform restarts the instance.
    """
    engine = get_engine()
    if get_settings().DB_CREATE_TABLES:
        await create_tables(engine)
        logger.info("Tables ensured")
    if not await check_db_connection(engine):
        raise RuntimeError("Database connection failed during startup.")


async def on_shutdown_dispose() -> None:
    """Closes the engine's connections on shutdown."""
    global _engine, _SessionFactory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _SessionFactory = None


# -----------------------------------------------------------------------------
# Local self-test: python -m backend.fulfillment.database
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    async def _selftest():
        await on_startup_init_db()
        ok = await check_db_connection()
        print(f"[STORESKULL][DB] Health check: {'OK' if ok else 'FAIL'}")
        await on_shutdown_dispose()

    asyncio.run(_selftest())
