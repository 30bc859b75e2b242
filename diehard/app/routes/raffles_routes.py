# -*- coding: utf-8 -*-
# diehard/app/routes/raffles_routes.py
# =============================================================================
# Purpose:
#   User-facing raffle HTTP endpoints: the active raffle showcase, history of
#   finished raffles, the caller's tickets, raffle detail and purchase.
#
# Invariants:
#   • Routes are thin: identity and path parsing here, rules in services.
#   • Purchase is a coin operation and requires a known caller (X-User-Id).
#   • Static paths (/history, /my-tickets) are declared before /{raffle_id}.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from diehard.app.core.logging_core import get_logger
from diehard.app.deps import (
    AuthContext,
    etag_headers,
    get_auth_context,
    get_db,
    raffle_id_param,
    require_user,
)
from diehard.app.schemas import (
    ERROR_RESPONSES,
    MyTicketsOut,
    PurchaseIn,
    PurchaseOut,
    RaffleDetailOut,
    RaffleHistoryOut,
    RaffleListOut,
)
from diehard.app.services.raffles_service import (
    svc_get_raffle_detail,
    svc_list_active_raffles,
    svc_list_my_tickets,
    svc_list_raffle_history,
    svc_purchase_tickets,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/raffles", tags=["raffles"], responses=ERROR_RESPONSES)


@router.get("", response_model=RaffleListOut, summary="Active raffles")
async def list_active_raffles(
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> RaffleListOut:
    """Active raffles, soonest draw first. Carries an ETag of the listing."""
    items = await svc_list_active_raffles(db)
    out = RaffleListOut(items=items, count=len(items))
    response.headers.update(etag_headers(out.model_dump(mode="json")))
    return out


@router.get("/history", response_model=RaffleHistoryOut, summary="Finished raffles")
async def list_raffle_history(
    limit: int = Query(20, description="Page size, clamped to the configured maximum"),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> RaffleHistoryOut:
    data = await svc_list_raffle_history(db, limit=limit, offset=offset)
    return RaffleHistoryOut(**data)


@router.get("/my-tickets", response_model=MyTicketsOut, summary="My tickets across raffles")
async def list_my_tickets(
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MyTicketsOut:
    data = await svc_list_my_tickets(db, int(ctx.user_id))
    return MyTicketsOut(**data)


@router.get("/{raffle_id}", response_model=RaffleDetailOut, summary="Raffle detail")
async def get_raffle_detail(
    raffle_id: int = Depends(raffle_id_param),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> RaffleDetailOut:
    """Raffle card; the caller's own tickets are included when X-User-Id is set."""
    data = await svc_get_raffle_detail(
        db,
        raffle_id,
        viewer_id=ctx.user_id,
        include_draft=ctx.is_admin,
    )
    return RaffleDetailOut(**data)


@router.post("/{raffle_id}/purchase", response_model=PurchaseOut, summary="Buy tickets")
async def purchase_tickets(
    payload: PurchaseIn,
    raffle_id: int = Depends(raffle_id_param),
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> PurchaseOut:
    """
    Coin operation: debits quantity × ticket price and issues consecutive
    ticket numbers. Fails as a whole on cap, balance or state errors.
    """
    data = await svc_purchase_tickets(
        db,
        raffle_id=raffle_id,
        buyer_id=int(ctx.user_id),
        quantity=payload.quantity,
    )
    return PurchaseOut(**data)


__all__ = ["router"]
