# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import timedelta

from diehard.app.models import RAFFLE_STATUS_ACTIVE, RAFFLE_STATUS_CANCELLED, RAFFLE_STATUS_COMPLETED
from diehard.app.scheduler import raffles_autodraw
from diehard.app.services.raffles_service import svc_purchase_tickets

from .helpers import raffle_row


async def test_tick_draws_overdue_raffles(db, session_factory, make_user, make_raffle, now):
    uid = await make_user("alice", balance=100)
    sold = await make_raffle(title="sold", draw_in=timedelta(days=1))
    await svc_purchase_tickets(db, raffle_id=sold, buyer_id=uid, quantity=2)
    empty = await make_raffle(title="empty", draw_in=timedelta(minutes=-1))
    future = await make_raffle(title="future", draw_in=timedelta(days=3))

    summary = await raffles_autodraw.run_once(session_factory, now=now + timedelta(days=2))

    assert summary == {"checked": 2, "drawn": 1, "cancelled": 1, "skipped": 0, "failed": 0}
    assert (await raffle_row(db, sold)).status == RAFFLE_STATUS_COMPLETED
    assert (await raffle_row(db, empty)).status == RAFFLE_STATUS_CANCELLED
    assert (await raffle_row(db, future)).status == RAFFLE_STATUS_ACTIVE


async def test_tick_survives_a_failing_draw(db, session_factory, make_raffle, now, monkeypatch):
    first = await make_raffle(title="first", draw_in=timedelta(minutes=-10))
    second = await make_raffle(title="second", draw_in=timedelta(minutes=-5))
    real_draw = raffles_autodraw.svc_draw_winner

    async def flaky_draw(session, raffle_id, **kwargs):
        if raffle_id == first:
            raise RuntimeError("db hiccup")
        return await real_draw(session, raffle_id, **kwargs)

    monkeypatch.setattr(raffles_autodraw, "svc_draw_winner", flaky_draw)

    summary = await raffles_autodraw.run_once(session_factory, now=now)

    assert summary["failed"] == 1
    assert summary["cancelled"] == 1
    assert (await raffle_row(db, first)).status == RAFFLE_STATUS_ACTIVE
    assert (await raffle_row(db, second)).status == RAFFLE_STATUS_CANCELLED


async def test_tick_skips_raffle_settled_by_someone_else(db, session_factory, make_raffle, now, monkeypatch):
    rid = await make_raffle(draw_in=timedelta(minutes=-1))
    real_draw = raffles_autodraw.svc_draw_winner

    async def racing_draw(session, raffle_id, **kwargs):
        # another worker settles the raffle first
        async with session_factory() as other:
            await real_draw(other, raffle_id, **kwargs)
        return await real_draw(session, raffle_id, **kwargs)

    monkeypatch.setattr(raffles_autodraw, "svc_draw_winner", racing_draw)

    summary = await raffles_autodraw.run_once(session_factory, now=now)

    assert summary["skipped"] == 1
    assert (await raffle_row(db, rid)).status == RAFFLE_STATUS_CANCELLED


async def test_run_forever_is_bounded_and_sleeps_with_jitter(session_factory):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    await raffles_autodraw.run_forever(session_factory, sleeper=fake_sleep, max_ticks=3)

    assert len(sleeps) == 3
    assert all(600 - 15 <= s <= 600 + 15 for s in sleeps)
