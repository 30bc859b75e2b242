# -*- coding: utf-8 -*-
# diehard/app/crud/raffles_crud.py
# =============================================================================
# Purpose:
#   • Data access for raffle cards: reads for the public and admin views,
#     row locking, and the conditional writes the state machine relies on.
#
# Invariants:
#   • Terminal transitions are conditional UPDATEs ("only while status is
#     still X"); callers learn whether they won the race from the return
#     value instead of re-checking in Python.
#   • Ticket numbers are allocated by an atomic increment-and-fetch on
#     last_ticket_number, in the same statement that bumps the sold counter.
#
# Prohibitions:
#   • No coin movement and no commits here; services own the transaction.
# =============================================================================
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.models import (
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_TERMINAL_STATUSES,
    Raffle,
)


class RafflesCRUD:
    """CRUD wrapper for the raffles table, no money logic."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, raffle_id: int) -> Raffle | None:
        stmt = (
            select(Raffle)
            .where(Raffle.id == int(raffle_id))
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_for_update(self, raffle_id: int) -> Raffle | None:
        """Load the raffle under a row lock (FOR UPDATE) for the rest of the transaction."""

        stmt = (
            select(Raffle)
            .where(Raffle.id == int(raffle_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_many(self, raffle_ids: Iterable[int]) -> Dict[int, Raffle]:
        ids = sorted({int(x) for x in raffle_ids})
        if not ids:
            return {}
        rows = await self.session.scalars(select(Raffle).where(Raffle.id.in_(ids)))
        return {r.id: r for r in rows}

    async def list_all(self, *, status: Optional[str] = None) -> List[Raffle]:
        """Admin listing, newest first."""

        stmt = select(Raffle).order_by(Raffle.created_at.desc(), Raffle.id.desc())
        if status:
            stmt = stmt.where(Raffle.status == status)
        return list(await self.session.scalars(stmt))

    async def list_active(self) -> List[Raffle]:
        stmt = (
            select(Raffle)
            .where(Raffle.status == RAFFLE_STATUS_ACTIVE)
            .order_by(Raffle.draw_date.asc(), Raffle.id.asc())
        )
        return list(await self.session.scalars(stmt))

    async def list_history(self, *, limit: int, offset: int) -> Tuple[List[Raffle], int]:
        """Completed and cancelled raffles, most recently finished first, plus the total."""

        cond = Raffle.status.in_(RAFFLE_TERMINAL_STATUSES)
        total = await self.session.scalar(select(func.count(Raffle.id)).where(cond))
        stmt = (
            select(Raffle)
            .where(cond)
            .order_by(Raffle.completed_at.desc(), Raffle.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(await self.session.scalars(stmt)), int(total or 0)

    async def list_ready_for_draw(self, now: datetime) -> List[Raffle]:
        stmt = (
            select(Raffle)
            .where(Raffle.status == RAFFLE_STATUS_ACTIVE, Raffle.draw_date <= now)
            .order_by(Raffle.draw_date.asc(), Raffle.id.asc())
        )
        return list(await self.session.scalars(stmt))

    async def transition(
        self,
        raffle_id: int,
        *,
        from_statuses: Sequence[str],
        to_status: str,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Conditional status change: applies only while the raffle is still in
        one of from_statuses. Returns True when this call made the change.
        """

        stmt = (
            update(Raffle)
            .where(Raffle.id == int(raffle_id), Raffle.status.in_(tuple(from_statuses)))
            .values(status=to_status, **(values or {}))
            .returning(Raffle.id)
            .execution_options(synchronize_session=False)
        )
        changed = (await self.session.execute(stmt)).scalar_one_or_none()
        return changed is not None

    async def allocate_ticket_numbers(self, raffle_id: int, quantity: int, now: datetime) -> Optional[int]:
        """
        Reserve `quantity` consecutive ticket numbers and count them as sold.

        Returns the last allocated number (the block is last-quantity+1..last),
        or None when the raffle is no longer active.
        """

        stmt = (
            update(Raffle)
            .where(Raffle.id == int(raffle_id), Raffle.status == RAFFLE_STATUS_ACTIVE)
            .values(
                last_ticket_number=Raffle.last_ticket_number + int(quantity),
                total_tickets_sold=Raffle.total_tickets_sold + int(quantity),
                updated_at=now,
            )
            .returning(Raffle.last_ticket_number)
            .execution_options(synchronize_session=False)
        )
        last = (await self.session.execute(stmt)).scalar_one_or_none()
        return int(last) if last is not None else None

    async def delete_if_unsold(self, raffle_id: int) -> bool:
        """Delete only while no ticket was ever sold and the raffle is not completed."""

        stmt = (
            delete(Raffle)
            .where(
                Raffle.id == int(raffle_id),
                Raffle.total_tickets_sold == 0,
                Raffle.status != RAFFLE_STATUS_COMPLETED,
            )
            .returning(Raffle.id)
            .execution_options(synchronize_session=False)
        )
        deleted = (await self.session.execute(stmt)).scalar_one_or_none()
        return deleted is not None
