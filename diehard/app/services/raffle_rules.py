# -*- coding: utf-8 -*-
# diehard/app/services/raffle_rules.py
# =============================================================================
# Diehard: Raffle state machine rules
# -----------------------------------------------------------------------------
# Lifecycle:
#     draft ──activate──▶ active ──draw──▶ completed
#       │                   │
#       └──────cancel───────┴──cancel/draw(no tickets)──▶ cancelled
#
# Invariants:
#   • Status only moves forward; completed and cancelled are terminal.
#   • completed/cancelled are reachable only through the draw and cancel
#     flows, never through an admin edit.
#   • Every terminal-state violation carries a distinct error code so the
#     caller can tell "already completed" from "already cancelled".
#
# This module is pure: it reads Raffle objects and raises domain errors.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from diehard.app.core.errors_core import ConflictError, NotFoundError, ValidationError
from diehard.app.core.utils_core import as_utc, to_positive_int
from diehard.app.models import (
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_STATUS_DRAFT,
    RAFFLE_STATUS_ENUM,
    Raffle,
)

# admin edits may only target these; terminal states belong to draw/cancel
EDITABLE_STATUS_TARGETS = (RAFFLE_STATUS_DRAFT, RAFFLE_STATUS_ACTIVE)

CODE_ALREADY_COMPLETED = "raffle_already_completed"
CODE_ALREADY_CANCELLED = "raffle_already_cancelled"
CODE_NOT_ACTIVE = "raffle_not_active"
CODE_SALES_CLOSED = "raffle_sales_closed"


def parse_raffle_id(raw: Any) -> int:
    """Raffle ids are positive integers; anything else is a ValidationError."""
    raffle_id = to_positive_int(raw)
    if raffle_id is None:
        raise ValidationError("Invalid raffle id.", details={"raffle_id": str(raw)})
    return raffle_id


def require_raffle(raffle: Optional[Raffle], raffle_id: int) -> Raffle:
    if raffle is None:
        raise NotFoundError("Raffle not found.", details={"raffle_id": raffle_id})
    return raffle


def terminal_conflict(raffle_id: int, status: str) -> ConflictError:
    """The error for any operation attempted on a completed or cancelled raffle."""
    if status == RAFFLE_STATUS_COMPLETED:
        return ConflictError(
            "Raffle already completed",
            code=CODE_ALREADY_COMPLETED,
            details={"raffle_id": raffle_id, "status": status},
        )
    return ConflictError(
        "Raffle already cancelled",
        code=CODE_ALREADY_CANCELLED,
        details={"raffle_id": raffle_id, "status": status},
    )


def ensure_not_terminal(raffle: Raffle) -> None:
    if raffle.is_terminal:
        raise terminal_conflict(raffle.id, raffle.status)


def ensure_open_for_sale(raffle: Raffle, now: datetime) -> None:
    """A purchase needs an active raffle whose draw time is still ahead."""
    ensure_not_terminal(raffle)
    if raffle.status != RAFFLE_STATUS_ACTIVE:
        raise ConflictError(
            "Raffle is not open for ticket sales yet.",
            code=CODE_NOT_ACTIVE,
            details={"raffle_id": raffle.id, "status": raffle.status},
        )
    draw_date = as_utc(raffle.draw_date)
    if draw_date is None or now >= draw_date:
        raise ConflictError(
            "Ticket sales for this raffle have closed.",
            code=CODE_SALES_CLOSED,
            details={"raffle_id": raffle.id, "draw_date": draw_date.isoformat() if draw_date else None},
        )


def validate_status_target(raffle: Raffle, target: Any) -> str:
    """
    Status requested by an admin edit.

    Unknown or terminal targets are ValidationError; moving an active raffle
    back to draft is a ConflictError.
    """
    if not isinstance(target, str) or target not in RAFFLE_STATUS_ENUM:
        raise ValidationError(
            "Invalid status.",
            details={"status": target, "allowed": list(EDITABLE_STATUS_TARGETS)},
        )
    if target not in EDITABLE_STATUS_TARGETS:
        raise ValidationError(
            f"Status '{target}' can only be reached by drawing or cancelling the raffle.",
            details={"status": target, "allowed": list(EDITABLE_STATUS_TARGETS)},
        )
    if raffle.status == RAFFLE_STATUS_ACTIVE and target == RAFFLE_STATUS_DRAFT:
        raise ConflictError(
            "An active raffle cannot go back to draft.",
            details={"raffle_id": raffle.id, "status": raffle.status},
        )
    return target


def validate_ticket_price(value: Any) -> int:
    price = to_positive_int(value) if not isinstance(value, str) else None
    if price is None:
        raise ValidationError("Ticket price must be a positive whole number.", details={"ticket_price": value})
    return price


def validate_ticket_cap(value: Any) -> Optional[int]:
    """None (or 0) means unlimited; otherwise a positive whole number."""
    if value is None or value == 0:
        return None
    cap = to_positive_int(value) if not isinstance(value, str) else None
    if cap is None:
        raise ValidationError(
            "Max tickets per user must be a positive whole number.",
            details={"max_tickets_per_user": value},
        )
    return cap


__all__ = [
    "EDITABLE_STATUS_TARGETS",
    "CODE_ALREADY_COMPLETED",
    "CODE_ALREADY_CANCELLED",
    "CODE_NOT_ACTIVE",
    "CODE_SALES_CLOSED",
    "parse_raffle_id",
    "require_raffle",
    "terminal_conflict",
    "ensure_not_terminal",
    "ensure_open_for_sale",
    "validate_status_target",
    "validate_ticket_price",
    "validate_ticket_cap",
]
