# -*- coding: utf-8 -*-
# diehard/app/models/__init__.py
# =============================================================================
# Single entry point of the model layer. Importing this package registers
# every table on Base.metadata (alembic and tests rely on that).
#
# Models describe data only; balances move in services/coins_service.py and
# raffle state moves in the raffle services.
# =============================================================================

from __future__ import annotations

from typing import Dict, Type

from ..core.database_core import Base
from .raffle_models import (
    RAFFLE_OPEN_STATUSES,
    RAFFLE_STATUS_ACTIVE,
    RAFFLE_STATUS_CANCELLED,
    RAFFLE_STATUS_COMPLETED,
    RAFFLE_STATUS_DRAFT,
    RAFFLE_STATUS_ENUM,
    RAFFLE_TERMINAL_STATUSES,
    Raffle,
    RaffleTicket,
)
from .user_models import CoinTransaction, User

MODEL_REGISTRY: Dict[str, Type[Base]] = {
    "User": User,
    "CoinTransaction": CoinTransaction,
    "Raffle": Raffle,
    "RaffleTicket": RaffleTicket,
}

__all__ = [
    "Base",
    "MODEL_REGISTRY",
    "User",
    "CoinTransaction",
    "Raffle",
    "RaffleTicket",
    "RAFFLE_STATUS_DRAFT",
    "RAFFLE_STATUS_ACTIVE",
    "RAFFLE_STATUS_COMPLETED",
    "RAFFLE_STATUS_CANCELLED",
    "RAFFLE_STATUS_ENUM",
    "RAFFLE_OPEN_STATUSES",
    "RAFFLE_TERMINAL_STATUSES",
]
