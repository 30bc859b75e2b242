# -*- coding: utf-8 -*-
# diehard/app/routes/admin/admin_raffles_routes.py
# =============================================================================
# Purpose:
#   Admin HTTP endpoints for raffles: list, create, edit, delete, activate,
#   draw and cancel with refunds.
#
# Invariants:
#   • Every route is behind require_admin (403 otherwise).
#   • Cancel with failed refund credits answers 207 partial_failure; the
#     raffle is cancelled either way and the successful credits stand.
# =============================================================================

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.errors_core import PartialFailureError
from diehard.app.core.logging_core import get_logger
from diehard.app.deps import AuthContext, get_db, raffle_id_param, require_admin
from diehard.app.schemas import (
    ERROR_RESPONSES,
    CancelOut,
    DrawOut,
    ErrorResponse,
    RaffleCreateIn,
    RaffleDeletedOut,
    RaffleListOut,
    RaffleOut,
    RaffleUpdateIn,
)
from diehard.app.services.admin import AdminRafflesService
from diehard.app.services.raffle_settlement_service import svc_cancel_raffle, svc_draw_winner

logger = get_logger(__name__)
router = APIRouter(
    prefix="/admin/raffles",
    tags=["admin", "raffles"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=RaffleListOut, summary="All raffles (admin)")
async def admin_list_raffles(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> RaffleListOut:
    items = await AdminRafflesService.list_raffles(db, status=status_filter)
    return RaffleListOut(items=items, count=len(items))


@router.post(
    "",
    response_model=RaffleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a raffle (draft)",
)
async def admin_create_raffle(
    payload: RaffleCreateIn,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RaffleOut:
    data = await AdminRafflesService.create_raffle(db, payload.model_dump(), admin.user_id)
    return RaffleOut(**data)


@router.put("/{raffle_id}", response_model=RaffleOut, summary="Edit a raffle")
async def admin_update_raffle(
    payload: RaffleUpdateIn,
    raffle_id: int = Depends(raffle_id_param),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RaffleOut:
    """Partial edit: only fields sent in the body are applied."""
    changes = payload.model_dump(exclude_unset=True)
    data = await AdminRafflesService.update_raffle(db, raffle_id, changes, admin.user_id)
    return RaffleOut(**data)


@router.delete("/{raffle_id}", response_model=RaffleDeletedOut, summary="Delete an unsold raffle")
async def admin_delete_raffle(
    raffle_id: int = Depends(raffle_id_param),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RaffleDeletedOut:
    data = await AdminRafflesService.delete_raffle(db, raffle_id, admin.user_id)
    return RaffleDeletedOut(**data)


@router.post("/{raffle_id}/activate", response_model=RaffleOut, summary="Open ticket sales")
async def admin_activate_raffle(
    raffle_id: int = Depends(raffle_id_param),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RaffleOut:
    data = await AdminRafflesService.activate_raffle(db, raffle_id, admin.user_id)
    return RaffleOut(**data)


@router.post("/{raffle_id}/draw", response_model=DrawOut, summary="Draw the winner")
async def admin_draw_raffle(
    raffle_id: int = Depends(raffle_id_param),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> DrawOut:
    """Allowed before the scheduled draw date. A raffle without tickets is cancelled."""
    data = await svc_draw_winner(db, raffle_id)
    logger.info(
        "admin draw",
        extra={"raffle_id": raffle_id, "admin_id": admin.user_id, "outcome": data["outcome"]},
    )
    return DrawOut(**data)


@router.post(
    "/{raffle_id}/cancel",
    response_model=CancelOut,
    responses={207: {"model": ErrorResponse, "description": "Cancelled, some refunds failed"}},
    summary="Cancel and refund every buyer",
)
async def admin_cancel_raffle(
    raffle_id: int = Depends(raffle_id_param),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CancelOut:
    data = await svc_cancel_raffle(db, raffle_id)
    failures: List[dict] = data["failures"]
    if failures:
        raise PartialFailureError(
            f"Raffle cancelled, but {len(failures)} refund(s) failed.",
            failures=failures,
            details={
                "raffle_id": data["raffle_id"],
                "refunded": data["refunded"],
                "total_amount": data["total_amount"],
                "ticket_count": data["ticket_count"],
            },
        )
    logger.info("admin cancel", extra={"raffle_id": raffle_id, "admin_id": admin.user_id})
    return CancelOut(**data)


__all__ = ["router"]
