# -*- coding: utf-8 -*-
"""
Shared fixtures: an in-memory aiosqlite database per test, a session on it,
factories for users and raffles, and an HTTP client bound to the app.
"""

from __future__ import annotations

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("API_PREFIX", None)

from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from diehard.app import create_app
from diehard.app.core.database_core import Base, get_db
from diehard.app.core.utils_core import utcnow
from diehard.app.models import (
    RAFFLE_STATUS_ACTIVE,
    Raffle,
    User,
)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def now() -> datetime:
    return utcnow()


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    async def _make(username: str, balance: int = 0) -> int:
        user = User(username=username, coin_balance=balance, lifetime_coins=balance)
        db.add(user)
        await db.commit()
        return user.id

    return _make


@pytest.fixture
def make_raffle(db, now):
    async def _make(
        title: str = "Signed jersey",
        *,
        ticket_price: int = 10,
        max_tickets_per_user: Optional[int] = None,
        status: str = RAFFLE_STATUS_ACTIVE,
        draw_in: timedelta = timedelta(days=7),
    ) -> int:
        raffle = Raffle(
            title=title,
            description="",
            images=[],
            ticket_price=ticket_price,
            max_tickets_per_user=max_tickets_per_user,
            total_tickets_sold=0,
            last_ticket_number=0,
            status=status,
            draw_date=now + draw_in,
            created_at=now,
            updated_at=now,
        )
        db.add(raffle)
        await db.commit()
        return raffle.id

    return _make


# -----------------------------------------------------------------------------
# HTTP
# -----------------------------------------------------------------------------

@pytest.fixture
async def client(session_factory) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app()

    async def _override_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
