# -*- coding: utf-8 -*-
# diehard/app/core/database_core.py
# =============================================================================
# Purpose:
#   • Single DB entry point (PostgreSQL + asyncpg + SQLAlchemy 2.0).
#   • Declarative Base shared by every model.
#   • AsyncEngine / async_sessionmaker creation and session handout for
#     routes, services and background ticks.
#   • Health and self-healing helpers (db_ping, reset_engine).
#
# Invariants:
#   • Async engine only (create_async_engine).
#   • The DSN comes from Settings.database_url_asyncpg(), nowhere else.
#   • Sessions use expire_on_commit=False; callers own commit/rollback.
#   • File-backed SQLite (local runs) serializes writers with BEGIN IMMEDIATE.
#
# Prohibitions:
#   • No business logic (debits, draws, refunds) in this module.
#   • No DDL here; tables are created by alembic migrations.
# =============================================================================

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

from sqlalchemy import MetaData, event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from diehard.app.core.config_core import get_settings
from diehard.app.core.logging_core import get_logger

logger = get_logger(__name__)
settings = get_settings()

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for every table of the service."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# -----------------------------------------------------------------------------
# Global engine and session factory
# -----------------------------------------------------------------------------
_engine: Optional[AsyncEngine] = None
_SessionFactory: Optional[async_sessionmaker[AsyncSession]] = None
_engine_lock = asyncio.Lock()

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _is_memory_sqlite(dsn: str) -> bool:
    return ":memory:" in dsn or dsn.rstrip("/").endswith("sqlite+aiosqlite:")


def _engine_kwargs(dsn: str) -> Dict[str, Any]:
    """Pool options per backend: sqlite has no sized pool."""
    if dsn.startswith("sqlite"):
        if _is_memory_sqlite(dsn):
            return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        return {"connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


def _install_sqlite_write_lock(engine: AsyncEngine) -> None:
    """
    File-backed SQLite ignores SELECT ... FOR UPDATE. Every transaction opens
    with BEGIN IMMEDIATE instead, taking the database write lock up front, so
    purchase, draw and cancel flows run one at a time across connections.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(dsn: str, *, echo: bool = False) -> AsyncEngine:
    """AsyncEngine for a normalized DSN, with the per-backend pool and locking setup."""
    engine = create_async_engine(dsn, echo=echo, **_engine_kwargs(dsn))
    if dsn.startswith("sqlite") and not _is_memory_sqlite(dsn):
        _install_sqlite_write_lock(engine)
    return engine


def _create_engine() -> AsyncEngine:
    """
    Build a new AsyncEngine from the current settings.

    • DSN normalized by Settings.database_url_asyncpg().
    • pool_pre_ping on Postgres catches dead connections early.
    • echo only with DEBUG.
    """
    dsn = settings.database_url_asyncpg()
    logger.info("Creating async DB engine", extra={"dsn_set": bool(dsn)})
    return build_engine(dsn, echo=settings.DEBUG)


def _create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


async def reset_engine() -> None:
    """
    Recreate the engine and session factory.

    Used after fatal connection failures or a DSN change. The old engine is
    disposed so no connections are left hanging; if the new one cannot be
    built the old one stays in place.
    """
    global _engine, _SessionFactory

    async with _engine_lock:
        old_engine = _engine
        try:
            new_engine = _create_engine()
        except Exception:
            logger.exception("Failed to reset DB engine")
            raise
        _SessionFactory = _create_session_factory(new_engine)
        _engine = new_engine
        logger.info("DB engine has been reset successfully")
        if old_engine is not None:
            await old_engine.dispose()


def get_engine() -> AsyncEngine:
    """Return the current AsyncEngine, creating it lazily on first use."""
    global _engine, _SessionFactory

    if _engine is None:
        _engine = _create_engine()
        _SessionFactory = _create_session_factory(_engine)
        logger.info("DB engine lazily initialized")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = _create_session_factory(get_engine())
        logger.info("Session factory initialized")
    return _SessionFactory


@asynccontextmanager
async def lifespan_session(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Session scope for background ticks and dependencies.

    Rolls back on any exception and always closes the session. Commit is
    the caller's job (unit of work).
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


# -----------------------------------------------------------------------------
# FastAPI dependency
# -----------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session dependency for routes:

        SessionDep = Annotated[AsyncSession, Depends(get_db)]

    Errors are logged with context and re-raised for the exception handlers.
    """
    async with lifespan_session() as session:
        try:
            yield session
        except Exception as exc:
            logger.warning("DB session aborted", extra={"error_type": type(exc).__name__})
            raise


async def db_ping() -> bool:
    """SELECT 1 against the engine: True when the DB answers."""
    engine = get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, DBAPIError, OSError) as exc:
        logger.error("DB ping failed: DB is not reachable", extra={"error": str(exc)})
        return False


__all__ = [
    "AsyncSession",
    "AsyncEngine",
    "Base",
    "build_engine",
    "get_engine",
    "get_session_factory",
    "lifespan_session",
    "get_db",
    "db_ping",
    "reset_engine",
]
