# -*- coding: utf-8 -*-
# diehard/app/routes/__init__.py
# =============================================================================
# Purpose:
#   Single mounting point of the HTTP routers. Exposes:
#     • api_router: one APIRouter with every area included;
#     • register(app, prefix): mounts api_router on the FastAPI app;
#     • list_registered_routes(): names of the mounted routers (diagnostics).
#
# Prohibitions:
#   • No SQL and no service calls here, only include_router.
#   • Each router carries its own prefix ("/raffles", "/admin/raffles").
# =============================================================================

from __future__ import annotations

from typing import List, Tuple

from fastapi import APIRouter, FastAPI

from diehard.app.core.logging_core import get_logger

from .admin import admin_raffles_router
from .raffles_routes import router as raffles_router

logger = get_logger(__name__)

ROUTERS: Tuple[Tuple[str, APIRouter], ...] = (
    ("raffles_routes", raffles_router),
    ("admin_raffles_routes", admin_raffles_router),
)

api_router = APIRouter()
_ATTACHED: List[str] = []

for _name, _router in ROUTERS:
    api_router.include_router(_router)
    _ATTACHED.append(_name)


def register(app: FastAPI, prefix: str = "") -> None:
    """Mount every router on the app under `prefix` (e.g. "/api")."""
    app.include_router(api_router, prefix=prefix)
    logger.info("Routes registered", extra={"prefix": prefix, "routers": list(_ATTACHED)})


def list_registered_routes() -> List[str]:
    return list(_ATTACHED)


__all__ = ["api_router", "register", "list_registered_routes"]
