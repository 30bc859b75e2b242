# -*- coding: utf-8 -*-
"""Alembic environment for the Diehard raffle service (async).

Purpose:
    • Run alembic against the async SQLAlchemy engine (PostgreSQL/asyncpg,
      or aiosqlite for local work).
    • Use the shared Declarative Base so autogenerate sees every model.

Invariants:
    • The DSN comes from Settings.database_url_asyncpg() only.
    • DDL only: no data changes, no coin movement.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from diehard.app.core.config_core import get_settings
from diehard.app.core.database_core import Base
from diehard.app.models import MODEL_REGISTRY

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

settings = get_settings()
db_url = settings.database_url_asyncpg()
config.set_main_option("sqlalchemy.url", db_url)

# every model is registered on Base.metadata by importing diehard.app.models
_ = MODEL_REGISTRY
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL without a database connection."""

    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
        render_as_batch=settings.is_sqlite,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=settings.is_sqlite,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Create an async engine and run the migrations through run_sync."""

    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
