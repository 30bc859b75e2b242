# -*- coding: utf-8 -*-
# diehard/app/services/raffle_settlement_service.py
# =============================================================================
# Diehard: Raffle settlement: drawing and cancellation with refunds
# -----------------------------------------------------------------------------
# Draw:
#   • One winning ticket, uniformly at random over ALL tickets (each ticket
#     is one equal chance, not each buyer), drawn with the `secrets` CSPRNG.
#   • Zero tickets → the raffle is cancelled with reason "no_tickets"; this
#     is a valid outcome, not an error.
#   • The status flip to completed is a conditional UPDATE from an open
#     status: a concurrent or repeated draw, or a draw racing a cancel,
#     loses and gets the terminal-state conflict.
#
# Cancel:
#   • The raffle is flipped to cancelled FIRST, conditionally; only the
#     caller that made the flip issues refunds, so refunds happen once.
#   • One credit per buyer (sum of amount_paid, ticket count), each in its
#     own savepoint; a failed credit is logged and reported, the others
#     still go through and the raffle stays cancelled.
#   • Tickets are kept; refunds are coin ledger events.
# =============================================================================

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Any, Callable, Dict, List, NoReturn, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.errors_core import ConflictError
from diehard.app.core.logging_core import get_logger, logger_with
from diehard.app.core.utils_core import utcnow
from diehard.app.crud import RafflesCRUD, TicketLedgerCRUD
from diehard.app.models import (
    RAFFLE_OPEN_STATUSES,
    RAFFLE_STATUS_CANCELLED,
    RAFFLE_STATUS_COMPLETED,
)
from diehard.app.services.coins_service import credit_coins
from diehard.app.services.raffle_rules import (
    CODE_ALREADY_COMPLETED,
    ensure_not_terminal,
    require_raffle,
    terminal_conflict,
)

logger = get_logger(__name__)

REFUND_CATEGORY = "raffle_refund"
NO_TICKETS_REASON = "no_tickets"


async def _raise_lost_race(raffles: RafflesCRUD, raffle_id: int) -> NoReturn:
    """A conditional transition matched nothing: report the state that won."""
    current = await raffles.get(raffle_id)
    if current is not None and current.is_terminal:
        raise terminal_conflict(raffle_id, current.status)
    raise ConflictError(
        "Raffle changed state concurrently, retry the operation.",
        details={"raffle_id": raffle_id, "status": current.status if current else None},
    )


# -----------------------------------------------------------------------------
# Draw
# -----------------------------------------------------------------------------

async def svc_draw_winner(
    db: AsyncSession,
    raffle_id: int,
    *,
    now: Optional[datetime] = None,
    pick_index: Callable[[int], int] = secrets.randbelow,
) -> Dict[str, Any]:
    """
    Select the winner of a raffle exactly once.

    Returns {"outcome": "completed", winning_ticket_number, winner_id,
    winner_username, total_tickets} or {"outcome": "cancelled",
    "reason": "no_tickets"}. Terminal raffles raise ConflictError.
    """
    now = now or utcnow()
    raffles = RafflesCRUD(db)
    ledger = TicketLedgerCRUD(db)
    log = logger_with(logger, raffle_id=raffle_id)

    try:
        raffle = require_raffle(await raffles.get_for_update(raffle_id), raffle_id)
        ensure_not_terminal(raffle)
        tickets = await ledger.list_for_raffle(raffle.id)

        if not tickets:
            moved = await raffles.transition(
                raffle.id,
                from_statuses=RAFFLE_OPEN_STATUSES,
                to_status=RAFFLE_STATUS_CANCELLED,
                values={"completed_at": now, "updated_at": now},
            )
            if not moved:
                await _raise_lost_race(raffles, raffle.id)
            await db.commit()
            log.info("raffle drawn with no tickets, cancelled")
            return {
                "raffle_id": raffle.id,
                "outcome": RAFFLE_STATUS_CANCELLED,
                "reason": NO_TICKETS_REASON,
                "total_tickets": 0,
            }

        index = pick_index(len(tickets))
        if not 0 <= index < len(tickets):
            raise ValueError(f"pick_index returned {index} for {len(tickets)} tickets")
        winner = tickets[index]

        moved = await raffles.transition(
            raffle.id,
            from_statuses=RAFFLE_OPEN_STATUSES,
            to_status=RAFFLE_STATUS_COMPLETED,
            values={
                "winner_id": winner.buyer_id,
                "winner_username": winner.username,
                "winner_ticket_id": winner.id,
                "completed_at": now,
                "updated_at": now,
            },
        )
        if not moved:
            await _raise_lost_race(raffles, raffle.id)
        if not await ledger.mark_winner(raffle.id, winner.id):
            raise ConflictError(
                "Raffle already has a winning ticket.",
                code=CODE_ALREADY_COMPLETED,
                details={"raffle_id": raffle.id},
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    log.info(
        "raffle winner drawn",
        extra={
            "ticket_number": winner.ticket_number,
            "winner_id": winner.buyer_id,
            "total_tickets": len(tickets),
        },
    )
    return {
        "raffle_id": raffle.id,
        "outcome": RAFFLE_STATUS_COMPLETED,
        "reason": None,
        "winning_ticket_number": winner.ticket_number,
        "winner_id": winner.buyer_id,
        "winner_username": winner.username,
        "total_tickets": len(tickets),
    }


# -----------------------------------------------------------------------------
# Cancel + refund
# -----------------------------------------------------------------------------

async def svc_cancel_raffle(
    db: AsyncSession,
    raffle_id: int,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Cancel a raffle and refund every buyer what they paid.

    Returns refunded (buyers credited), total_amount, ticket_count and the
    list of failed credits. The raffle is cancelled even when some credits
    fail.
    """
    now = now or utcnow()
    raffles = RafflesCRUD(db)
    ledger = TicketLedgerCRUD(db)
    log = logger_with(logger, raffle_id=raffle_id)

    refunded = 0
    total_amount = 0
    ticket_count = 0
    failures: List[Dict[str, Any]] = []

    try:
        raffle = require_raffle(await raffles.get_for_update(raffle_id), raffle_id)
        ensure_not_terminal(raffle)
        rid, title = raffle.id, raffle.title
        moved = await raffles.transition(
            rid,
            from_statuses=RAFFLE_OPEN_STATUSES,
            to_status=RAFFLE_STATUS_CANCELLED,
            values={"completed_at": now, "updated_at": now},
        )
        if not moved:
            await _raise_lost_race(raffles, rid)

        for group in await ledger.totals_by_buyer(rid):
            ticket_count += group.ticket_count
            try:
                async with db.begin_nested():
                    await credit_coins(
                        db,
                        group.buyer_id,
                        group.amount_paid,
                        category=REFUND_CATEGORY,
                        description=f"Raffle cancelled: {title} ({group.ticket_count} tickets)",
                        metadata={"raffle_id": rid, "ticket_count": group.ticket_count},
                    )
            except Exception as exc:
                log.exception(
                    "raffle refund failed",
                    extra={"buyer_id": group.buyer_id, "amount": group.amount_paid},
                )
                failures.append(
                    {
                        "buyer_id": group.buyer_id,
                        "amount": group.amount_paid,
                        "ticket_count": group.ticket_count,
                        "error": str(exc) or type(exc).__name__,
                    }
                )
                continue
            refunded += 1
            total_amount += group.amount_paid

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    log.info(
        "raffle cancelled",
        extra={
            "refunded": refunded,
            "total_amount": total_amount,
            "ticket_count": ticket_count,
            "failures": len(failures),
        },
    )
    return {
        "raffle_id": rid,
        "status": RAFFLE_STATUS_CANCELLED,
        "refunded": refunded,
        "total_amount": total_amount,
        "ticket_count": ticket_count,
        "failures": failures,
    }


__all__ = ["svc_draw_winner", "svc_cancel_raffle", "REFUND_CATEGORY", "NO_TICKETS_REASON"]
