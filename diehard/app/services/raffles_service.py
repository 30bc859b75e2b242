# -*- coding: utf-8 -*-
# diehard/app/services/raffles_service.py
# =============================================================================
# Diehard: Raffles (user-facing service)
# -----------------------------------------------------------------------------
# Purpose:
#   • Public reads: active raffles, raffle detail with the caller's tickets,
#     history of finished raffles, the caller's tickets across raffles.
#   • Purchase flow: sell N tickets to a buyer against one raffle.
#   • The "ready for draw" query used by the auto-draw tick.
#
# Purchase invariants (one DB transaction):
#   1) the raffle row is locked (FOR UPDATE) for the whole purchase;
#   2) raffle is active and its draw time is ahead;
#   3) owned + quantity <= max_tickets_per_user (when a cap is set);
#   4) the coin debit is atomic and fails without effect on low balance;
#   5) ticket numbers come from an atomic increment-and-fetch of the
#      raffle's sequence, in the same UPDATE that bumps total_tickets_sold;
#   6) tickets snapshot the price they were sold at.
#   Any failure rolls back the whole transaction, debit included.
#
# Prohibitions:
#   • No balance arithmetic here: only coins_service moves coins.
# =============================================================================

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.config_core import get_settings
from diehard.app.core.errors_core import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from diehard.app.core.logging_core import get_logger
from diehard.app.core.utils_core import as_utc, clamp, utcnow
from diehard.app.crud import RafflesCRUD, TicketLedgerCRUD
from diehard.app.models import RAFFLE_STATUS_DRAFT, Raffle, RaffleTicket, User
from diehard.app.services.coins_service import debit_coins
from diehard.app.services.raffle_rules import (
    CODE_NOT_ACTIVE,
    ensure_open_for_sale,
    require_raffle,
)

logger = get_logger(__name__)
settings = get_settings()

PURCHASE_CATEGORY = "raffle_purchase"


# -----------------------------------------------------------------------------
# Serializers (ORM → plain dicts for the routes)
# -----------------------------------------------------------------------------

def serialize_raffle(raffle: Raffle) -> Dict[str, Any]:
    return {
        "id": raffle.id,
        "title": raffle.title,
        "description": raffle.description or "",
        "images": list(raffle.images or []),
        "team": raffle.team,
        "estimated_value": raffle.estimated_value,
        "ticket_price": int(raffle.ticket_price),
        "max_tickets_per_user": raffle.max_tickets_per_user,
        "total_tickets_sold": int(raffle.total_tickets_sold or 0),
        "status": raffle.status,
        "draw_date": as_utc(raffle.draw_date),
        "winner_id": raffle.winner_id,
        "winner_username": raffle.winner_username,
        "winner_ticket_id": raffle.winner_ticket_id,
        "created_at": as_utc(raffle.created_at),
        "updated_at": as_utc(raffle.updated_at),
        "completed_at": as_utc(raffle.completed_at),
    }


def serialize_ticket(ticket: RaffleTicket) -> Dict[str, Any]:
    return {
        "ticket_number": ticket.ticket_number,
        "purchased_at": as_utc(ticket.purchased_at),
        "amount_paid": int(ticket.amount_paid),
        "is_winner": bool(ticket.is_winner),
    }


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------

async def svc_list_active_raffles(db: AsyncSession) -> List[Dict[str, Any]]:
    """Active raffles, soonest draw first."""
    rows = await RafflesCRUD(db).list_active()
    return [serialize_raffle(r) for r in rows]


async def svc_get_raffle_detail(
    db: AsyncSession,
    raffle_id: int,
    *,
    viewer_id: Optional[int] = None,
    include_draft: bool = False,
) -> Dict[str, Any]:
    """
    Raffle card plus the viewer's own tickets (ordered by number).
    Drafts are hidden from the public unless include_draft is set.
    """
    raffle = await RafflesCRUD(db).get(raffle_id)
    if raffle is None or (raffle.status == RAFFLE_STATUS_DRAFT and not include_draft):
        raise NotFoundError("Raffle not found.", details={"raffle_id": raffle_id})

    my_tickets: List[Dict[str, Any]] = []
    if viewer_id is not None:
        tickets = await TicketLedgerCRUD(db).list_for_buyer_in_raffle(raffle.id, viewer_id)
        my_tickets = [serialize_ticket(t) for t in tickets]

    return {
        "raffle": serialize_raffle(raffle),
        "my_tickets": my_tickets,
        "my_ticket_count": len(my_tickets),
    }


async def svc_list_raffle_history(
    db: AsyncSession,
    *,
    limit: int = 20,
    offset: int = 0,
) -> Dict[str, Any]:
    """Completed and cancelled raffles, most recently finished first."""
    limit = clamp(limit, 1, settings.RAFFLE_HISTORY_MAX_LIMIT)
    offset = max(int(offset), 0)
    rows, total = await RafflesCRUD(db).list_history(limit=limit, offset=offset)
    return {
        "items": [serialize_raffle(r) for r in rows],
        "page": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(rows) < total,
        },
    }


async def svc_list_my_tickets(db: AsyncSession, user_id: int) -> Dict[str, Any]:
    """
    The caller's tickets grouped per raffle (most recent purchase first):
    ticket numbers, total spent and whether one of them won.
    """
    tickets = await TicketLedgerCRUD(db).list_for_buyer(user_id)
    raffles = await RafflesCRUD(db).get_many(t.raffle_id for t in tickets)

    groups: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
    for ticket in tickets:
        raffle = raffles.get(ticket.raffle_id)
        if raffle is None:
            continue
        group = groups.get(ticket.raffle_id)
        if group is None:
            group = {
                "raffle": serialize_raffle(raffle),
                "ticket_numbers": [],
                "ticket_count": 0,
                "total_spent": 0,
                "has_winner": False,
            }
            groups[ticket.raffle_id] = group
        group["ticket_numbers"].append(ticket.ticket_number)
        group["ticket_count"] += 1
        group["total_spent"] += int(ticket.amount_paid)
        group["has_winner"] = group["has_winner"] or bool(ticket.is_winner)

    for group in groups.values():
        group["ticket_numbers"].sort()

    items = list(groups.values())
    return {
        "raffles": items,
        "total_tickets": sum(g["ticket_count"] for g in items),
        "total_wins": sum(1 for g in items if g["has_winner"]),
    }


async def svc_get_raffles_ready_for_draw(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> List[Raffle]:
    """Active raffles whose draw time has passed."""
    return await RafflesCRUD(db).list_ready_for_draw(now or utcnow())


# -----------------------------------------------------------------------------
# Purchase
# -----------------------------------------------------------------------------

def _validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(
            "Quantity must be a whole number of at least 1.",
            details={"quantity": quantity},
        )
    max_per_call = settings.RAFFLE_MAX_TICKETS_PER_PURCHASE
    if quantity > max_per_call:
        raise LimitExceededError(
            f"You can buy at most {max_per_call} tickets at once.",
            details={"quantity": quantity, "max_per_purchase": max_per_call},
        )
    return quantity


async def _buyer_username(db: AsyncSession, buyer_id: int) -> str:
    username = await db.scalar(select(User.username).where(User.id == int(buyer_id)))
    if username is None:
        raise NotFoundError("User not found.", details={"user_id": buyer_id})
    return str(username)


async def svc_purchase_tickets(
    db: AsyncSession,
    *,
    raffle_id: int,
    buyer_id: int,
    quantity: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Buy `quantity` tickets of one raffle for `buyer_id`.

    Steps:
      1) lock the raffle, check it is active and still before its draw time;
      2) enforce the per-buyer cap;
      3) debit quantity * current price through the coin ledger;
      4) allocate consecutive ticket numbers and count them as sold;
      5) insert the tickets in one batch and commit.
    """
    qty = _validate_quantity(quantity)
    now = now or utcnow()
    raffles = RafflesCRUD(db)
    ledger = TicketLedgerCRUD(db)

    try:
        raffle = require_raffle(await raffles.get_for_update(raffle_id), raffle_id)
        ensure_open_for_sale(raffle, now)
        username = await _buyer_username(db, buyer_id)

        cap = raffle.max_tickets_per_user
        owned = await ledger.count_for_buyer(raffle.id, buyer_id)
        if cap is not None and owned + qty > cap:
            remaining = max(cap - owned, 0)
            raise LimitExceededError(
                f"You can only buy {remaining} more ticket(s) for this raffle "
                f"(max {cap} per user).",
                details={"remaining": remaining, "max_tickets_per_user": cap, "owned": owned},
            )

        price = int(raffle.ticket_price)
        total_cost = qty * price
        debit = await debit_coins(
            db,
            buyer_id,
            total_cost,
            category=PURCHASE_CATEGORY,
            description=f"{qty} ticket(s) for: {raffle.title}",
            metadata={"raffle_id": raffle.id, "quantity": qty, "price_per_ticket": price},
        )

        last_number = await raffles.allocate_ticket_numbers(raffle.id, qty, now)
        if last_number is None:
            raise ConflictError(
                "Raffle is no longer accepting purchases.",
                code=CODE_NOT_ACTIVE,
                details={"raffle_id": raffle.id},
            )
        numbers = await ledger.append_batch(
            raffle_id=raffle.id,
            buyer_id=buyer_id,
            username=username,
            first_number=last_number - qty + 1,
            quantity=qty,
            price=price,
            purchased_at=now,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "raffle tickets purchased",
        extra={
            "raffle_id": raffle_id,
            "buyer_id": buyer_id,
            "quantity": qty,
            "total_cost": total_cost,
            "first_number": numbers[0],
            "last_number": numbers[-1],
        },
    )
    return {
        "raffle_id": int(raffle_id),
        "tickets": [
            {"ticket_number": n, "purchased_at": now, "amount_paid": price, "is_winner": False}
            for n in numbers
        ],
        "quantity": qty,
        "total_cost": total_cost,
        "new_balance": debit.new_balance,
        "total_tickets_sold": last_number,
    }


__all__ = [
    "serialize_raffle",
    "serialize_ticket",
    "svc_list_active_raffles",
    "svc_get_raffle_detail",
    "svc_list_raffle_history",
    "svc_list_my_tickets",
    "svc_get_raffles_ready_for_draw",
    "svc_purchase_tickets",
]
