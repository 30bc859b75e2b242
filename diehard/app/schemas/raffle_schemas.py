# -*- coding: utf-8 -*-
# diehard/app/schemas/raffle_schemas.py
# =============================================================================
# Purpose:
#   Pydantic DTOs of the raffle API: admin create/update bodies, purchase
#   body, raffle/ticket views, draw and cancel results.
#
# Invariants:
#   • Request bodies check types only. Business rules (title, draw date,
#     positive price) are enforced by the services and surface as domain
#     ValidationError messages.
#   • Coins are integers; timestamps are ISO-8601 UTC.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .common_schemas import PageMeta

# =============================================================================
# Requests
# -----------------------------------------------------------------------------


class RaffleCreateIn(BaseModel):
    """Admin: new raffle. Starts as draft."""

    title: Optional[str] = Field(None, description="Prize title (required)")
    description: str = Field("", description="Free-form description")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    team: Optional[str] = Field(None, description="Optional team tag")
    estimated_value: Optional[int] = Field(None, description="Estimated prize value")
    ticket_price: Optional[int] = Field(None, description="Coins per ticket (default from settings)")
    max_tickets_per_user: Optional[int] = Field(None, description="Per-buyer cap, null = unlimited")
    draw_date: Optional[Union[datetime, str]] = Field(None, description="Scheduled draw time (future)")


class RaffleUpdateIn(BaseModel):
    """Admin: partial update. Only fields present in the body are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    team: Optional[str] = None
    estimated_value: Optional[int] = None
    ticket_price: Optional[int] = None
    max_tickets_per_user: Optional[int] = None
    draw_date: Optional[Union[datetime, str]] = None
    status: Optional[str] = None


class PurchaseIn(BaseModel):
    quantity: int = Field(1, description="Tickets to buy in this call")


# =============================================================================
# Views
# -----------------------------------------------------------------------------


class RaffleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str = ""
    images: List[str] = Field(default_factory=list)
    team: Optional[str] = None
    estimated_value: Optional[int] = None
    ticket_price: int
    max_tickets_per_user: Optional[int] = None
    total_tickets_sold: int
    status: str
    draw_date: datetime
    winner_id: Optional[int] = None
    winner_username: Optional[str] = None
    winner_ticket_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RaffleListOut(BaseModel):
    items: List[RaffleOut]
    count: int


class TicketOut(BaseModel):
    ticket_number: int
    purchased_at: datetime
    amount_paid: Optional[int] = None
    is_winner: bool = False


class RaffleDetailOut(BaseModel):
    raffle: RaffleOut
    my_tickets: List[TicketOut] = Field(default_factory=list)
    my_ticket_count: int = 0


class RaffleHistoryOut(BaseModel):
    items: List[RaffleOut]
    page: PageMeta


class PurchaseOut(BaseModel):
    raffle_id: int
    tickets: List[TicketOut]
    quantity: int
    total_cost: int
    new_balance: int
    total_tickets_sold: int


class MyRaffleTicketsOut(BaseModel):
    raffle: RaffleOut
    ticket_numbers: List[int]
    ticket_count: int
    total_spent: int
    has_winner: bool


class MyTicketsOut(BaseModel):
    raffles: List[MyRaffleTicketsOut]
    total_tickets: int
    total_wins: int


class DrawOut(BaseModel):
    raffle_id: int
    outcome: Literal["completed", "cancelled"]
    reason: Optional[str] = None
    winning_ticket_number: Optional[int] = None
    winner_id: Optional[int] = None
    winner_username: Optional[str] = None
    total_tickets: int = 0


class RaffleDeletedOut(BaseModel):
    raffle_id: int
    deleted: bool


class RefundFailureOut(BaseModel):
    buyer_id: int
    amount: int
    ticket_count: int
    error: str


class CancelOut(BaseModel):
    raffle_id: int
    status: str
    refunded: int
    total_amount: int
    ticket_count: int
    failures: List[RefundFailureOut] = Field(default_factory=list)


__all__ = [
    "RaffleCreateIn",
    "RaffleUpdateIn",
    "PurchaseIn",
    "RaffleOut",
    "RaffleListOut",
    "TicketOut",
    "RaffleDetailOut",
    "RaffleHistoryOut",
    "PurchaseOut",
    "MyRaffleTicketsOut",
    "MyTicketsOut",
    "DrawOut",
    "RaffleDeletedOut",
    "RefundFailureOut",
    "CancelOut",
]
