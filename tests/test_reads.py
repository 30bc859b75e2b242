# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import timedelta

import pytest

from diehard.app.core.errors_core import NotFoundError
from diehard.app.models import RAFFLE_STATUS_DRAFT
from diehard.app.services.raffle_settlement_service import svc_cancel_raffle, svc_draw_winner
from diehard.app.services.raffles_service import (
    svc_get_raffle_detail,
    svc_get_raffles_ready_for_draw,
    svc_list_active_raffles,
    svc_list_my_tickets,
    svc_list_raffle_history,
    svc_purchase_tickets,
)


async def test_active_list_ordered_by_draw_date(db, make_raffle):
    late = await make_raffle(title="late", draw_in=timedelta(days=9))
    soon = await make_raffle(title="soon", draw_in=timedelta(days=1))
    await make_raffle(title="hidden", status=RAFFLE_STATUS_DRAFT)

    items = await svc_list_active_raffles(db)

    assert [r["id"] for r in items] == [soon, late]


async def test_detail_includes_viewer_tickets(db, make_user, make_raffle):
    a = await make_user("alice", balance=100)
    b = await make_user("bob", balance=100)
    rid = await make_raffle()
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=a, quantity=2)
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=b, quantity=1)
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=a, quantity=1)

    mine = await svc_get_raffle_detail(db, rid, viewer_id=a)
    anonymous = await svc_get_raffle_detail(db, rid)

    assert [t["ticket_number"] for t in mine["my_tickets"]] == [1, 2, 4]
    assert mine["my_ticket_count"] == 3
    assert mine["raffle"]["total_tickets_sold"] == 4
    assert anonymous["my_tickets"] == []


async def test_draft_detail_hidden_from_public(db, make_raffle):
    rid = await make_raffle(status=RAFFLE_STATUS_DRAFT)
    with pytest.raises(NotFoundError):
        await svc_get_raffle_detail(db, rid)
    out = await svc_get_raffle_detail(db, rid, include_draft=True)
    assert out["raffle"]["status"] == RAFFLE_STATUS_DRAFT


async def test_history_pagination(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    finished = []
    for i in range(3):
        rid = await make_raffle(title=f"r{i}")
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)
        await svc_draw_winner(db, rid)
        finished.append(rid)
    cancelled = await make_raffle(title="r3")
    await svc_cancel_raffle(db, cancelled)
    await make_raffle(title="still open")

    page = await svc_list_raffle_history(db, limit=2, offset=0)
    rest = await svc_list_raffle_history(db, limit=2, offset=2)

    assert page["page"] == {"total": 4, "limit": 2, "offset": 0, "has_more": True}
    assert rest["page"]["has_more"] is False
    ids = [r["id"] for r in page["items"] + rest["items"]]
    assert sorted(ids) == sorted(finished + [cancelled])


async def test_history_limit_is_clamped(db):
    assert (await svc_list_raffle_history(db, limit=1000))["page"]["limit"] == 50
    assert (await svc_list_raffle_history(db, limit=0))["page"]["limit"] == 1


async def test_my_tickets_grouped_per_raffle(db, make_user, make_raffle):
    a = await make_user("alice", balance=200)
    first = await make_raffle(title="first", ticket_price=5)
    second = await make_raffle(title="second", ticket_price=7)
    await svc_purchase_tickets(db, raffle_id=first, buyer_id=a, quantity=2)
    await svc_purchase_tickets(db, raffle_id=second, buyer_id=a, quantity=1)
    await svc_draw_winner(db, second)

    out = await svc_list_my_tickets(db, a)

    by_raffle = {g["raffle"]["id"]: g for g in out["raffles"]}
    assert by_raffle[first]["ticket_numbers"] == [1, 2]
    assert by_raffle[first]["total_spent"] == 10
    assert by_raffle[first]["has_winner"] is False
    assert by_raffle[second]["has_winner"] is True
    assert out["total_tickets"] == 3
    assert out["total_wins"] == 1


async def test_ready_for_draw(db, make_raffle, now):
    due = await make_raffle(title="due", draw_in=timedelta(minutes=-5))
    await make_raffle(title="later", draw_in=timedelta(days=1))
    await make_raffle(title="draft", status=RAFFLE_STATUS_DRAFT, draw_in=timedelta(minutes=-5))

    ready = await svc_get_raffles_ready_for_draw(db, now)

    assert [r.id for r in ready] == [due]
