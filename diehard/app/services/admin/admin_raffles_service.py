# -*- coding: utf-8 -*-
# diehard/app/services/admin/admin_raffles_service.py
# =============================================================================
# Diehard: Raffles (admin service)
# -----------------------------------------------------------------------------
# Purpose:
#   • Admin management of raffle cards:
#       - create (always as draft) / partial edit;
#       - activate (draft → active);
#       - delete while no ticket was ever sold;
#       - list with an optional status filter.
#   • Draw and cancel live in raffle_settlement_service; routes call them
#     directly.
#
# Hard invariants:
#   1) completed/cancelled are never set by an edit.
#   2) A raffle with sold tickets is never deleted: the buyers' money is
#      returned by cancelling it instead.
#   3) Price and cap edits affect future purchases only; existing tickets
#      keep the price they were sold at.
#   4) Every write commits here and is logged with the admin id.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.config_core import get_settings
from diehard.app.core.errors_core import ConflictError, ValidationError
from diehard.app.core.logging_core import get_logger
from diehard.app.core.utils_core import parse_iso_datetime, utcnow
from diehard.app.crud import RafflesCRUD
from diehard.app.models import (
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_STATUS_DRAFT,
    RAFFLE_STATUS_ENUM,
    Raffle,
)
from diehard.app.services.raffle_rules import (
    ensure_not_terminal,
    require_raffle,
    terminal_conflict,
    validate_status_target,
    validate_ticket_cap,
    validate_ticket_price,
)
from diehard.app.services.raffles_service import serialize_raffle

logger = get_logger(__name__)
S = get_settings()

TITLE_MAX_LENGTH = 200
TEAM_MAX_LENGTH = 64
CODE_HAS_TICKETS = "raffle_has_tickets"

# plain descriptive fields copied as-is from an edit body
_PLAIN_FIELDS = ("description", "images", "estimated_value")


# -----------------------------------------------------------------------------
# Field validation
# -----------------------------------------------------------------------------

def _clean_title(value: Any) -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not title:
        raise ValidationError("Title is required.", details={"field": "title"})
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters.",
            details={"field": "title", "length": len(title)},
        )
    return title


def _clean_team(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Team must be a string.", details={"field": "team"})
    team = value.strip()
    if len(team) > TEAM_MAX_LENGTH:
        raise ValidationError(
            f"Team must be at most {TEAM_MAX_LENGTH} characters.",
            details={"field": "team", "length": len(team)},
        )
    return team or None


def _future_draw_date(value: Any, now: datetime) -> datetime:
    draw_date = parse_iso_datetime(value)
    if draw_date is None:
        raise ValidationError(
            "Draw date is required and must be an ISO-8601 date.",
            details={"field": "draw_date", "value": None if value is None else str(value)},
        )
    if draw_date <= now:
        raise ValidationError(
            "Draw date must be in the future.",
            details={"field": "draw_date", "value": draw_date.isoformat()},
        )
    return draw_date


def _clean_images(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ValidationError("Images must be a list of URLs.", details={"field": "images"})
    return [x.strip() for x in value if x.strip()]


class AdminRafflesService:
    """Admin operations on raffle cards. All methods commit on success."""

    @staticmethod
    async def list_raffles(db: AsyncSession, *, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status is not None and status not in RAFFLE_STATUS_ENUM:
            raise ValidationError(
                "Invalid status filter.",
                details={"status": status, "allowed": list(RAFFLE_STATUS_ENUM)},
            )
        rows = await RafflesCRUD(db).list_all(status=status)
        return [serialize_raffle(r) for r in rows]

    @staticmethod
    async def create_raffle(
        db: AsyncSession,
        payload: Dict[str, Any],
        admin_id: Optional[int],
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create a raffle in draft status.

        Required: title, draw_date (future). Price defaults to
        RAFFLE_DEFAULT_TICKET_PRICE; a missing or zero cap means unlimited.
        """
        now = now or utcnow()
        title = _clean_title(payload.get("title"))
        draw_date = _future_draw_date(payload.get("draw_date"), now)

        raw_price = payload.get("ticket_price")
        price = S.RAFFLE_DEFAULT_TICKET_PRICE if raw_price is None else validate_ticket_price(raw_price)
        cap = validate_ticket_cap(payload.get("max_tickets_per_user"))

        raffle = Raffle(
            title=title,
            description=payload.get("description") or "",
            images=_clean_images(payload.get("images")),
            team=_clean_team(payload.get("team")),
            estimated_value=payload.get("estimated_value"),
            ticket_price=price,
            max_tickets_per_user=cap,
            total_tickets_sold=0,
            last_ticket_number=0,
            status=RAFFLE_STATUS_DRAFT,
            draw_date=draw_date,
            created_by=admin_id,
            created_at=now,
            updated_at=now,
        )
        try:
            db.add(raffle)
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "raffle created",
            extra={"raffle_id": raffle.id, "admin_id": admin_id, "ticket_price": price},
        )
        return serialize_raffle(raffle)

    @staticmethod
    async def update_raffle(
        db: AsyncSession,
        raffle_id: int,
        changes: Dict[str, Any],
        admin_id: Optional[int],
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Partial edit: only keys present in `changes` are applied.

        Terminal raffles are read-only (ConflictError). Status may only move
        draft → active through this path.
        """
        now = now or utcnow()
        crud = RafflesCRUD(db)
        try:
            raffle = require_raffle(await crud.get_for_update(raffle_id), raffle_id)
            if raffle.is_terminal:
                raise terminal_conflict(raffle.id, raffle.status)

            if "title" in changes:
                raffle.title = _clean_title(changes["title"])
            if "draw_date" in changes:
                raffle.draw_date = _future_draw_date(changes["draw_date"], now)
            if "ticket_price" in changes:
                raffle.ticket_price = validate_ticket_price(changes["ticket_price"])
            if "team" in changes:
                raffle.team = _clean_team(changes["team"])
            if "max_tickets_per_user" in changes:
                raffle.max_tickets_per_user = validate_ticket_cap(changes["max_tickets_per_user"])
            for field in _PLAIN_FIELDS:
                if field not in changes:
                    continue
                value = changes[field]
                if field == "images":
                    value = _clean_images(value)
                elif field == "description":
                    value = value or ""
                setattr(raffle, field, value)
            if changes.get("status") is not None:
                raffle.status = validate_status_target(raffle, changes["status"])

            raffle.updated_at = now
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "raffle updated",
            extra={"raffle_id": raffle.id, "admin_id": admin_id, "fields": sorted(changes)},
        )
        return serialize_raffle(raffle)

    @staticmethod
    async def activate_raffle(
        db: AsyncSession,
        raffle_id: int,
        admin_id: Optional[int],
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """draft → active. Already active is a no-op; terminal is a ConflictError."""
        now = now or utcnow()
        crud = RafflesCRUD(db)
        try:
            raffle = require_raffle(await crud.get(raffle_id), raffle_id)
            if raffle.status == RAFFLE_STATUS_ACTIVE:
                return serialize_raffle(raffle)
            ensure_not_terminal(raffle)

            moved = await crud.transition(
                raffle.id,
                from_statuses=(RAFFLE_STATUS_DRAFT,),
                to_status=RAFFLE_STATUS_ACTIVE,
                values={"updated_at": now},
            )
            if moved:
                await db.commit()
            current = require_raffle(await crud.get(raffle.id), raffle.id)
            if not moved:
                ensure_not_terminal(current)
        except Exception:
            await db.rollback()
            raise

        if moved:
            logger.info("raffle activated", extra={"raffle_id": raffle_id, "admin_id": admin_id})
        return serialize_raffle(current)

    @staticmethod
    async def delete_raffle(db: AsyncSession, raffle_id: int, admin_id: Optional[int]) -> Dict[str, Any]:
        """Remove a raffle that never sold a ticket; otherwise tell the caller to cancel."""
        crud = RafflesCRUD(db)
        try:
            raffle = require_raffle(await crud.get_for_update(raffle_id), raffle_id)
            _ensure_deletable(raffle)
            if not await crud.delete_if_unsold(raffle.id):
                _ensure_deletable(require_raffle(await crud.get(raffle.id), raffle.id))
                raise ConflictError("Raffle changed concurrently, retry.", details={"raffle_id": raffle.id})
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("raffle deleted", extra={"raffle_id": raffle_id, "admin_id": admin_id})
        return {"raffle_id": int(raffle_id), "deleted": True}


def _ensure_deletable(raffle: Raffle) -> None:
    if raffle.status == RAFFLE_STATUS_COMPLETED:
        raise terminal_conflict(raffle.id, raffle.status)
    if int(raffle.total_tickets_sold or 0) > 0:
        raise ConflictError(
            "Raffle has sold tickets; cancel it instead so buyers are refunded.",
            code=CODE_HAS_TICKETS,
            details={"raffle_id": raffle.id, "total_tickets_sold": int(raffle.total_tickets_sold)},
        )


__all__ = ["AdminRafflesService", "CODE_HAS_TICKETS"]
