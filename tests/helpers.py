# -*- coding: utf-8 -*-
"""Column readers for assertions: always fresh from the database, never stale ORM state."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.models import CoinTransaction, Raffle, RaffleTicket, User


async def balance_of(db: AsyncSession, user_id: int) -> int:
    return int(await db.scalar(select(User.coin_balance).where(User.id == user_id)))


async def raffle_row(db: AsyncSession, raffle_id: int) -> Optional[Raffle]:
    stmt = select(Raffle).where(Raffle.id == raffle_id).execution_options(populate_existing=True)
    return await db.scalar(stmt)


async def ticket_count(db: AsyncSession, raffle_id: int) -> int:
    stmt = select(func.count(RaffleTicket.id)).where(RaffleTicket.raffle_id == raffle_id)
    return int(await db.scalar(stmt))


async def tickets_of(db: AsyncSession, raffle_id: int) -> List[RaffleTicket]:
    stmt = (
        select(RaffleTicket)
        .where(RaffleTicket.raffle_id == raffle_id)
        .order_by(RaffleTicket.ticket_number)
        .execution_options(populate_existing=True)
    )
    return list(await db.scalars(stmt))


async def ledger_entries(db: AsyncSession, user_id: int, category: Optional[str] = None) -> List[CoinTransaction]:
    stmt = select(CoinTransaction).where(CoinTransaction.user_id == user_id).order_by(CoinTransaction.id)
    if category:
        stmt = stmt.where(CoinTransaction.category == category)
    return list(await db.scalars(stmt))
