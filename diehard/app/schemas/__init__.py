# -*- coding: utf-8 -*-
# diehard/app/schemas/__init__.py
# =============================================================================
# Facade of the Pydantic schemas:
#     from diehard.app.schemas import RaffleOut, PurchaseIn, ...
# Declarative DTOs only.
# =============================================================================

from __future__ import annotations

from .common_schemas import *  # noqa: F401,F403
from .common_schemas import __all__ as _common_all
from .raffle_schemas import *  # noqa: F401,F403
from .raffle_schemas import __all__ as _raffle_all

__all__ = [*_common_all, *_raffle_all]
