# -*- coding: utf-8 -*-
# diehard/app/models/raffle_models.py
# =============================================================================
# Purpose:
#   SQLAlchemy models of the raffle subsystem: raffle cards and the ticket
#   ledger.
#
# Invariants:
#   • Status domain draft|active|completed|cancelled, enforced by CHECK.
#   • (raffle_id, ticket_number) is unique; ticket numbers come from the
#     raffle's last_ticket_number sequence, never from MAX()+1.
#   • total_tickets_sold == number of ticket rows == last_ticket_number.
#   • At most one winning ticket per raffle (partial unique index).
#   • Tickets are immutable apart from the one-time is_winner flip and are
#     never deleted by cancellation.
#
# Prohibitions:
#   • No money logic in models; amount_paid is a snapshot for refunds only.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database_core import Base
from .user_models import JSON_TYPE, PK_TYPE

RAFFLE_STATUS_DRAFT = "draft"
RAFFLE_STATUS_ACTIVE = "active"
RAFFLE_STATUS_COMPLETED = "completed"
RAFFLE_STATUS_CANCELLED = "cancelled"

RAFFLE_STATUS_ENUM = (
    RAFFLE_STATUS_DRAFT,
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_STATUS_CANCELLED,
)
RAFFLE_OPEN_STATUSES = (RAFFLE_STATUS_DRAFT, RAFFLE_STATUS_ACTIVE)
RAFFLE_TERMINAL_STATUSES = (RAFFLE_STATUS_COMPLETED, RAFFLE_STATUS_CANCELLED)


class Raffle(Base):
    """Raffle card: prize description, pricing rules, counters and settlement."""

    __tablename__ = "raffles"
    __table_args__ = (
        CheckConstraint(f"status IN {RAFFLE_STATUS_ENUM}", name="status_enum"),
        CheckConstraint("ticket_price > 0", name="ticket_price_positive"),
        CheckConstraint(
            "max_tickets_per_user IS NULL OR max_tickets_per_user > 0",
            name="max_tickets_positive",
        ),
        CheckConstraint("total_tickets_sold >= 0", name="sold_nonneg"),
        CheckConstraint("last_ticket_number >= 0", name="seq_nonneg"),
        Index("ix_raffles_status_draw_date", "status", "draw_date"),
        Index("ix_raffles_status_completed", "status", "completed_at"),
    )

    id: Mapped[int] = mapped_column(PK_TYPE, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    images: Mapped[List[str]] = mapped_column(JSON_TYPE, nullable=False, default=list)
    team: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    estimated_value: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # current price; each ticket snapshots the price it was sold at
    ticket_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_tickets_per_user: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    total_tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_ticket_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=RAFFLE_STATUS_DRAFT)
    draw_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    winner_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    winner_username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    winner_ticket_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tickets: Mapped[List["RaffleTicket"]] = relationship(
        back_populates="raffle", lazy="raise_on_sql", passive_deletes=True
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in RAFFLE_TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Raffle id={self.id} status={self.status} sold={self.total_tickets_sold}>"


class RaffleTicket(Base):
    """
    One purchased entry. ticket_number is unique within the raffle and
    strictly increasing in purchase order.
    """

    __tablename__ = "raffle_tickets"
    __table_args__ = (
        UniqueConstraint("raffle_id", "ticket_number", name="uq_raffle_ticket_number"),
        CheckConstraint("ticket_number > 0", name="ticket_number_positive"),
        CheckConstraint("amount_paid > 0", name="amount_paid_positive"),
        Index("ix_raffle_tickets_buyer", "buyer_id", "raffle_id", "ticket_number"),
        Index(
            "uq_raffle_tickets_one_winner",
            "raffle_id",
            unique=True,
            postgresql_where=text("is_winner"),
            sqlite_where=text("is_winner = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(PK_TYPE, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("raffles.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_paid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="tickets", lazy="raise_on_sql")

    def __repr__(self) -> str:
        return f"<RaffleTicket raffle={self.raffle_id} #{self.ticket_number} buyer={self.buyer_id}>"
