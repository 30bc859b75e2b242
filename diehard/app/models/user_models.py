# -*- coding: utf-8 -*-
# diehard/app/models/user_models.py
# =============================================================================
# Purpose:
#   SQLAlchemy models of the coin ledger: user balances and the append-only
#   transaction log written by every debit/credit.
#
# Invariants:
#   • Coins are whole integers; coin_balance never goes below zero (CHECK).
#   • Every balance change has exactly one coin_transactions row with the
#     balance after the change.
#
# Prohibitions:
#   • No balance arithmetic here; services/coins_service.py owns it.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import Base

# sqlite only autoincrements INTEGER PRIMARY KEY
PK_TYPE = BigInteger().with_variant(Integer, "sqlite")
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")

TX_TYPE_ENUM = ("earn", "spend")


class User(Base):
    """Fan account as seen by the raffle engine: identity plus coin balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("coin_balance >= 0", name="coin_balance_nonneg"),
        CheckConstraint("lifetime_coins >= 0", name="lifetime_coins_nonneg"),
    )

    id: Mapped[int] = mapped_column(PK_TYPE, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    coin_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # total ever credited; spending does not reduce it
    lifetime_coins: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} balance={self.coin_balance}>"


class CoinTransaction(Base):
    """
    Coin ledger entry.

      • type      'earn' (credit) or 'spend' (debit).
      • category  short classifier: raffle_purchase, raffle_refund, ...
      • amount    positive integer moved by this entry.
      • balance   user balance right after the entry.
      • meta      references such as raffleId, quantity, ticketCount.
    """

    __tablename__ = "coin_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint(f"type IN {TX_TYPE_ENUM}", name="type_enum"),
        Index("ix_coin_tx_user_created", "user_id", "created_at"),
        Index("ix_coin_tx_category_created", "category", "created_at"),
    )

    id: Mapped[int] = mapped_column(PK_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON_TYPE, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<CoinTransaction id={self.id} uid={self.user_id} {self.type} {self.amount} {self.category}>"
