# -*- coding: utf-8 -*-
# diehard/app/crud/raffle_tickets_crud.py
# =============================================================================
# Purpose:
#   • Ticket ledger: append-only ticket records, per-buyer counts, per-buyer
#     refund totals, and the one-time winner flag.
#
# Invariants:
#   • append_batch() only writes numbers handed out by
#     RafflesCRUD.allocate_ticket_numbers(); it never computes MAX()+1.
#   • mark_winner() flips is_winner only while no ticket of the raffle is a
#     winner yet (backed by a partial unique index).
#   • Tickets are never deleted here.
# =============================================================================
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from diehard.app.models import RaffleTicket


@dataclass(frozen=True)
class BuyerTotals:
    """What one buyer holds in one raffle: basis of a single refund credit."""

    buyer_id: int
    username: str
    ticket_count: int
    amount_paid: int


class TicketLedgerCRUD:
    """CRUD wrapper for raffle_tickets."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_for_buyer(self, raffle_id: int, buyer_id: int) -> int:
        stmt = select(func.count(RaffleTicket.id)).where(
            RaffleTicket.raffle_id == int(raffle_id),
            RaffleTicket.buyer_id == int(buyer_id),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def append_batch(
        self,
        *,
        raffle_id: int,
        buyer_id: int,
        username: str,
        first_number: int,
        quantity: int,
        price: int,
        purchased_at: datetime,
    ) -> List[int]:
        """Insert tickets first_number..first_number+quantity-1 in one statement."""

        numbers = list(range(int(first_number), int(first_number) + int(quantity)))
        rows = [
            {
                "raffle_id": int(raffle_id),
                "buyer_id": int(buyer_id),
                "username": username,
                "ticket_number": n,
                "amount_paid": int(price),
                "is_winner": False,
                "purchased_at": purchased_at,
            }
            for n in numbers
        ]
        await self.session.execute(insert(RaffleTicket), rows)
        return numbers

    async def list_for_raffle(self, raffle_id: int) -> List[RaffleTicket]:
        stmt = (
            select(RaffleTicket)
            .where(RaffleTicket.raffle_id == int(raffle_id))
            .order_by(RaffleTicket.ticket_number.asc())
        )
        return list(await self.session.scalars(stmt))

    async def list_for_buyer_in_raffle(self, raffle_id: int, buyer_id: int) -> List[RaffleTicket]:
        stmt = (
            select(RaffleTicket)
            .where(RaffleTicket.raffle_id == int(raffle_id), RaffleTicket.buyer_id == int(buyer_id))
            .order_by(RaffleTicket.ticket_number.asc())
        )
        return list(await self.session.scalars(stmt))

    async def list_for_buyer(self, buyer_id: int) -> List[RaffleTicket]:
        """Every ticket of a buyer, newest purchase first."""

        stmt = (
            select(RaffleTicket)
            .where(RaffleTicket.buyer_id == int(buyer_id))
            .order_by(RaffleTicket.purchased_at.desc(), RaffleTicket.raffle_id.desc(), RaffleTicket.ticket_number.asc())
        )
        return list(await self.session.scalars(stmt))

    async def totals_by_buyer(self, raffle_id: int) -> List[BuyerTotals]:
        """Group the raffle's tickets per buyer: count and sum of amount_paid."""

        stmt = (
            select(
                RaffleTicket.buyer_id,
                func.max(RaffleTicket.username),
                func.count(RaffleTicket.id),
                func.sum(RaffleTicket.amount_paid),
            )
            .where(RaffleTicket.raffle_id == int(raffle_id))
            .group_by(RaffleTicket.buyer_id)
            .order_by(RaffleTicket.buyer_id.asc())
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            BuyerTotals(
                buyer_id=int(buyer_id),
                username=str(username),
                ticket_count=int(count),
                amount_paid=int(total or 0),
            )
            for buyer_id, username, count, total in rows
        ]

    async def mark_winner(self, raffle_id: int, ticket_id: int) -> bool:
        """Set is_winner on one ticket unless the raffle already has a winner."""

        winners = aliased(RaffleTicket)
        has_winner = (
            select(winners.id)
            .where(winners.raffle_id == int(raffle_id), winners.is_winner.is_(True))
            .exists()
        )
        stmt = (
            update(RaffleTicket)
            .where(
                RaffleTicket.id == int(ticket_id),
                RaffleTicket.raffle_id == int(raffle_id),
                ~has_winner,
            )
            .values(is_winner=True)
            .returning(RaffleTicket.id)
            .execution_options(synchronize_session=False)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none() is not None
