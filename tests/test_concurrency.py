# -*- coding: utf-8 -*-
"""
Racing flows on a file-backed SQLite database: every task gets its own
session and connection, as concurrent requests do in production.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from diehard.app.core.database_core import Base, build_engine
from diehard.app.core.errors_core import ConflictError, LimitExceededError
from diehard.app.core.utils_core import utcnow
from diehard.app.models import (
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_CANCELLED,
    RAFFLE_STATUS_COMPLETED,
    Raffle,
    User,
)
from diehard.app.services.raffle_settlement_service import (
    REFUND_CATEGORY,
    svc_cancel_raffle,
    svc_draw_winner,
)
from diehard.app.services.raffles_service import svc_purchase_tickets

from .helpers import balance_of, ledger_entries, raffle_row, tickets_of


@pytest.fixture
async def shared_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'raffles.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)
    await engine.dispose()


async def _seed(factory, *, buyers, balance=1000, ticket_price=10, cap=None):
    now = utcnow()
    async with factory() as s:
        users = [User(username=name, coin_balance=balance, lifetime_coins=balance) for name in buyers]
        raffle = Raffle(
            title="Championship ball",
            description="",
            images=[],
            ticket_price=ticket_price,
            max_tickets_per_user=cap,
            total_tickets_sold=0,
            last_ticket_number=0,
            status=RAFFLE_STATUS_ACTIVE,
            draw_date=now + timedelta(days=1),
            created_at=now,
            updated_at=now,
        )
        s.add_all([*users, raffle])
        await s.commit()
        return raffle.id, [u.id for u in users]


async def _in_own_session(factory, call, *args, **kwargs):
    async with factory() as s:
        return await call(s, *args, **kwargs)


async def _race(*coros):
    return await asyncio.gather(*coros, return_exceptions=True)


# -----------------------------------------------------------------------------
# Purchases
# -----------------------------------------------------------------------------

async def test_concurrent_purchases_by_one_buyer_respect_the_cap(shared_factory):
    rid, (uid,) = await _seed(shared_factory, buyers=["alice"], cap=5)

    results = await _race(
        *[
            _in_own_session(shared_factory, svc_purchase_tickets, raffle_id=rid, buyer_id=uid, quantity=3)
            for _ in range(2)
        ]
    )

    ok = [r for r in results if isinstance(r, dict)]
    rejected = [r for r in results if isinstance(r, LimitExceededError)]
    assert (len(ok), len(rejected)) == (1, 1)
    async with shared_factory() as s:
        assert len(await tickets_of(s, rid)) == 3
        assert await balance_of(s, uid) == 970
        assert (await raffle_row(s, rid)).total_tickets_sold == 3


async def test_concurrent_purchases_number_tickets_uniquely(shared_factory):
    names = [f"fan{i}" for i in range(6)]
    rid, uids = await _seed(shared_factory, buyers=names)

    results = await _race(
        *[
            _in_own_session(shared_factory, svc_purchase_tickets, raffle_id=rid, buyer_id=uid, quantity=2)
            for uid in uids
        ]
    )

    assert all(isinstance(r, dict) for r in results), results
    async with shared_factory() as s:
        tickets = await tickets_of(s, rid)
        raffle = await raffle_row(s, rid)
        assert [t.ticket_number for t in tickets] == list(range(1, 13))
        assert raffle.total_tickets_sold == len(tickets) == raffle.last_ticket_number
        for uid in uids:
            numbers = sorted(t.ticket_number for t in tickets if t.buyer_id == uid)
            assert len(numbers) == 2
            assert numbers[1] == numbers[0] + 1


# -----------------------------------------------------------------------------
# Settlement
# -----------------------------------------------------------------------------

async def test_draw_and_cancel_race_has_one_winner(shared_factory):
    rid, (a, b) = await _seed(shared_factory, buyers=["alice", "bob"], ticket_price=10)
    await _in_own_session(shared_factory, svc_purchase_tickets, raffle_id=rid, buyer_id=a, quantity=2)
    await _in_own_session(shared_factory, svc_purchase_tickets, raffle_id=rid, buyer_id=b, quantity=1)

    drawn, cancelled = await _race(
        _in_own_session(shared_factory, svc_draw_winner, rid),
        _in_own_session(shared_factory, svc_cancel_raffle, rid),
    )

    outcomes = [r for r in (drawn, cancelled) if isinstance(r, dict)]
    conflicts = [r for r in (drawn, cancelled) if isinstance(r, ConflictError)]
    assert (len(outcomes), len(conflicts)) == (1, 1)

    async with shared_factory() as s:
        raffle = await raffle_row(s, rid)
        winners = [t for t in await tickets_of(s, rid) if t.is_winner]
        refunds = await ledger_entries(s, a, REFUND_CATEGORY) + await ledger_entries(s, b, REFUND_CATEGORY)
        if isinstance(drawn, dict):
            assert raffle.status == RAFFLE_STATUS_COMPLETED
            assert len(winners) == 1
            assert refunds == []
            assert (await balance_of(s, a), await balance_of(s, b)) == (980, 990)
        else:
            assert raffle.status == RAFFLE_STATUS_CANCELLED
            assert winners == []
            assert len(refunds) == 2
            assert (await balance_of(s, a), await balance_of(s, b)) == (1000, 1000)


async def test_double_draw_race_settles_once(shared_factory):
    rid, uids = await _seed(shared_factory, buyers=["alice", "bob", "carol"])
    for uid in uids:
        await _in_own_session(shared_factory, svc_purchase_tickets, raffle_id=rid, buyer_id=uid, quantity=2)

    results = await _race(*[_in_own_session(shared_factory, svc_draw_winner, rid) for _ in range(3)])

    completed = [r for r in results if isinstance(r, dict)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(completed) == 1
    assert len(conflicts) == 2
    assert {c.code for c in conflicts} == {"raffle_already_completed"}

    async with shared_factory() as s:
        raffle = await raffle_row(s, rid)
        winners = [t for t in await tickets_of(s, rid) if t.is_winner]
        assert raffle.status == RAFFLE_STATUS_COMPLETED
        assert len(winners) == 1
        assert raffle.winner_ticket_id == winners[0].id
        assert raffle.winner_id == completed[0]["winner_id"]
