# -*- coding: utf-8 -*-
# diehard/app/services/coins_service.py
# =============================================================================
# Diehard: Coin ledger (Diehard Dollars)
# -----------------------------------------------------------------------------
# The ONLY entry point for coin balance changes:
#   • debit_coins(...)   spend from a user's balance (purchase of tickets, ...)
#   • credit_coins(...)  add to a user's balance (refunds, rewards, ...)
#
# Rules:
#   • A user balance never goes negative: a debit is one conditional UPDATE
#     (coin_balance >= amount) and fails without partial effect otherwise.
#   • Every movement writes one coin_transactions row (type, category,
#     amount, balance after, description, meta).
#   • Neither primitive commits: both join the caller's transaction, so a
#     purchase debit and its ticket rows commit or roll back together.
#   • Amounts are positive integers.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.errors_core import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from diehard.app.core.logging_core import get_logger
from diehard.app.core.utils_core import utcnow
from diehard.app.models import CoinTransaction, User

logger = get_logger(__name__)

TX_EARN = "earn"
TX_SPEND = "spend"


# -----------------------------------------------------------------------------
# Operation result
# -----------------------------------------------------------------------------

@dataclass
class LedgerResult:
    user_id: int
    amount: int
    type: str                 # "earn" | "spend"
    category: str
    new_balance: int          # balance right after the movement
    transaction_id: Optional[int] = None


def _check_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            "Amount must be a positive whole number of coins.",
            details={"amount": amount},
        )
    return amount


async def _append_entry(
    db: AsyncSession,
    *,
    user_id: int,
    tx_type: str,
    category: str,
    amount: int,
    balance: int,
    description: str,
    metadata: Optional[Dict[str, Any]],
) -> int:
    entry = CoinTransaction(
        user_id=user_id,
        type=tx_type,
        category=category,
        amount=amount,
        balance=balance,
        description=description,
        meta=dict(metadata or {}),
        created_at=utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry.id


async def get_balance(db: AsyncSession, user_id: int) -> int:
    balance = await db.scalar(select(User.coin_balance).where(User.id == int(user_id)))
    if balance is None:
        raise NotFoundError("User not found.", details={"user_id": user_id})
    return int(balance)


async def debit_coins(
    db: AsyncSession,
    user_id: int,
    amount: int,
    *,
    category: str,
    description: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> LedgerResult:
    """
    Spend `amount` coins. The conditional UPDATE is the serialization point
    for concurrent spends of the same user.

    Raises NotFoundError (no such user) or InsufficientBalanceError.
    """
    amount = _check_amount(amount)
    stmt = (
        update(User)
        .where(User.id == int(user_id), User.coin_balance >= amount)
        .values(coin_balance=User.coin_balance - amount)
        .returning(User.coin_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await db.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        available = await db.scalar(select(User.coin_balance).where(User.id == int(user_id)))
        if available is None:
            raise NotFoundError("User not found.", details={"user_id": user_id})
        raise InsufficientBalanceError(
            "Insufficient balance.",
            details={"required": amount, "available": int(available)},
        )

    tx_id = await _append_entry(
        db,
        user_id=int(user_id),
        tx_type=TX_SPEND,
        category=category,
        amount=amount,
        balance=int(new_balance),
        description=description,
        metadata=metadata,
    )
    logger.info(
        "coins debited",
        extra={"user_id": user_id, "amount": amount, "category": category, "balance": int(new_balance)},
    )
    return LedgerResult(
        user_id=int(user_id),
        amount=amount,
        type=TX_SPEND,
        category=category,
        new_balance=int(new_balance),
        transaction_id=tx_id,
    )


async def credit_coins(
    db: AsyncSession,
    user_id: int,
    amount: int,
    *,
    category: str,
    description: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> LedgerResult:
    """Add `amount` coins; lifetime_coins grows with every credit. Raises NotFoundError."""
    amount = _check_amount(amount)
    stmt = (
        update(User)
        .where(User.id == int(user_id))
        .values(
            coin_balance=User.coin_balance + amount,
            lifetime_coins=User.lifetime_coins + amount,
        )
        .returning(User.coin_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await db.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        raise NotFoundError("User not found.", details={"user_id": user_id})

    tx_id = await _append_entry(
        db,
        user_id=int(user_id),
        tx_type=TX_EARN,
        category=category,
        amount=amount,
        balance=int(new_balance),
        description=description,
        metadata=metadata,
    )
    logger.info(
        "coins credited",
        extra={"user_id": user_id, "amount": amount, "category": category, "balance": int(new_balance)},
    )
    return LedgerResult(
        user_id=int(user_id),
        amount=amount,
        type=TX_EARN,
        category=category,
        new_balance=int(new_balance),
        transaction_id=tx_id,
    )


__all__ = ["LedgerResult", "get_balance", "debit_coins", "credit_coins"]
