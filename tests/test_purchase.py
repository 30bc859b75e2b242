# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import timedelta

import pytest

from diehard.app.core.errors_core import (
    ConflictError,
    InsufficientBalanceError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from diehard.app.models import (
    RAFFLE_STATUS_CANCELLED,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_STATUS_DRAFT,
)
from diehard.app.services.raffles_service import svc_purchase_tickets

from .helpers import balance_of, ledger_entries, raffle_row, ticket_count, tickets_of


async def test_first_purchase_numbers_from_one(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(ticket_price=10, max_tickets_per_user=5)

    out = await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=3)

    assert [t["ticket_number"] for t in out["tickets"]] == [1, 2, 3]
    assert out["total_cost"] == 30
    assert out["new_balance"] == 70
    assert await balance_of(db, uid) == 70
    raffle = await raffle_row(db, rid)
    assert raffle.total_tickets_sold == 3
    [entry] = await ledger_entries(db, uid, "raffle_purchase")
    assert entry.amount == 30
    assert entry.description == "3 ticket(s) for: Signed jersey"
    assert entry.meta == {"raffle_id": rid, "quantity": 3, "price_per_ticket": 10}


async def test_cap_exceeded_reports_remaining(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(ticket_price=10, max_tickets_per_user=5)
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=3)

    with pytest.raises(LimitExceededError) as err:
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=3)

    assert err.value.details["remaining"] == 2
    assert err.value.details["max_tickets_per_user"] == 5
    assert "2 more" in err.value.message
    assert await balance_of(db, uid) == 70
    assert await ticket_count(db, rid) == 3


async def test_cap_boundary(db, make_user, make_raffle):
    uid = await make_user("alice", balance=1_000)
    rid = await make_raffle(ticket_price=1, max_tickets_per_user=4)

    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=3)
    with pytest.raises(LimitExceededError):
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)

    assert await ticket_count(db, rid) == 4


async def test_insufficient_balance_leaves_no_trace(db, make_user, make_raffle):
    uid = await make_user("bob", balance=25)
    rid = await make_raffle(ticket_price=10)

    with pytest.raises(InsufficientBalanceError):
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=3)

    assert await balance_of(db, uid) == 25
    assert await ticket_count(db, rid) == 0
    raffle = await raffle_row(db, rid)
    assert raffle.total_tickets_sold == 0
    assert raffle.last_ticket_number == 0
    assert await ledger_entries(db, uid) == []


async def test_counter_matches_rows_and_numbers_are_unique(db, make_user, make_raffle):
    buyers = [await make_user(f"fan{i}", balance=500) for i in range(4)]
    rid = await make_raffle(ticket_price=2)

    for round_no in range(5):
        for uid in buyers:
            await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=round_no + 1)

    tickets = await tickets_of(db, rid)
    numbers = [t.ticket_number for t in tickets]
    raffle = await raffle_row(db, rid)
    assert raffle.total_tickets_sold == len(tickets) == 60
    assert numbers == list(range(1, 61))
    assert raffle.last_ticket_number == 60


async def test_price_change_applies_to_new_tickets_only(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(ticket_price=10)
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)

    raffle = await raffle_row(db, rid)
    raffle.ticket_price = 20
    await db.commit()
    await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)

    assert [t.amount_paid for t in await tickets_of(db, rid)] == [10, 20]
    assert await balance_of(db, uid) == 70


@pytest.mark.parametrize("quantity", [0, -1])
async def test_quantity_below_one(db, make_user, make_raffle, quantity):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle()
    with pytest.raises(ValidationError):
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=quantity)


async def test_quantity_above_per_purchase_max(db, make_user, make_raffle):
    uid = await make_user("alice", balance=10_000)
    rid = await make_raffle(ticket_price=1)
    with pytest.raises(LimitExceededError):
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=101)


async def test_draft_raffle_not_on_sale(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(status=RAFFLE_STATUS_DRAFT)
    with pytest.raises(ConflictError) as err:
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)
    assert err.value.code == "raffle_not_active"


async def test_sales_close_at_draw_date(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(draw_in=timedelta(minutes=-1))
    with pytest.raises(ConflictError) as err:
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)
    assert err.value.code == "raffle_sales_closed"
    assert await balance_of(db, uid) == 100


@pytest.mark.parametrize(
    "status, code",
    [
        (RAFFLE_STATUS_COMPLETED, "raffle_already_completed"),
        (RAFFLE_STATUS_CANCELLED, "raffle_already_cancelled"),
    ],
)
async def test_terminal_raffle_not_on_sale(db, make_user, make_raffle, status, code):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(status=status)
    with pytest.raises(ConflictError) as err:
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid, quantity=1)
    assert err.value.code == code


async def test_missing_raffle_and_buyer(db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle()
    with pytest.raises(NotFoundError):
        await svc_purchase_tickets(db, raffle_id=rid + 100, buyer_id=uid, quantity=1)
    with pytest.raises(NotFoundError):
        await svc_purchase_tickets(db, raffle_id=rid, buyer_id=uid + 100, quantity=1)
