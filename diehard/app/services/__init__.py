# -*- coding: utf-8 -*-
# diehard/app/services/__init__.py
# =============================================================================
# Diehard: service layer (single entry point)
# -----------------------------------------------------------------------------
# Purpose:
#   • One stable import point for the domain services used by routes and
#     the scheduler.
#
# Principles:
#   • No business logic here, only re-exports.
#   • Coins move only through coins_service; raffle state moves only through
#     the raffle services.
# =============================================================================

from __future__ import annotations

from .coins_service import LedgerResult, credit_coins, debit_coins, get_balance  # noqa: F401
from .raffle_settlement_service import svc_cancel_raffle, svc_draw_winner  # noqa: F401
from .raffles_service import (  # noqa: F401
    serialize_raffle,
    svc_get_raffle_detail,
    svc_get_raffles_ready_for_draw,
    svc_list_active_raffles,
    svc_list_my_tickets,
    svc_list_raffle_history,
    svc_purchase_tickets,
)
from .admin import AdminRafflesService  # noqa: F401

__all__ = [
    "LedgerResult",
    "get_balance",
    "debit_coins",
    "credit_coins",
    "serialize_raffle",
    "svc_list_active_raffles",
    "svc_get_raffle_detail",
    "svc_list_raffle_history",
    "svc_list_my_tickets",
    "svc_get_raffles_ready_for_draw",
    "svc_purchase_tickets",
    "svc_draw_winner",
    "svc_cancel_raffle",
    "AdminRafflesService",
]
