# -*- coding: utf-8 -*-
# diehard/app/deps.py
# =============================================================================
# Diehard: shared FastAPI dependencies (DB session, caller identity,
#           admin gate, path id parsing and ETag).
# -----------------------------------------------------------------------------
# Identity comes from trusted headers set by the platform gateway:
#   • X-User-Id: integer user id of the caller;
#   • X-Admin:   "true" for admin callers.
# Real authentication happens upstream; this module only reads the headers.
#
# This module does no business logic, only infrastructure and validation.
# =============================================================================
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status

from diehard.app.core.database_core import get_db
from diehard.app.core.logging_core import get_logger, set_request_context
from diehard.app.services.raffle_rules import parse_raffle_id

logger = get_logger(__name__)


def make_etag(payload: Any) -> str:
    """
    Deterministic ETag of a JSON-able payload (sha256 of the canonical dump).
    Lets clients answer with If-None-Match.
    """
    raw = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


# -----------------------------------------------------------------------------
# Identity / admin gate
# -----------------------------------------------------------------------------
@dataclass
class AuthContext:
    user_id: Optional[int]
    is_admin: bool = False


def get_auth_context(request: Request) -> AuthContext:
    """Caller identity from the trusted headers; malformed ids count as anonymous."""
    user_id_raw = request.headers.get("X-User-Id")
    is_admin_raw = request.headers.get("X-Admin")
    try:
        user_id = int(user_id_raw) if user_id_raw else None
    except ValueError:
        user_id = None
    if user_id is not None and user_id <= 0:
        user_id = None
    is_admin = str(is_admin_raw).strip().lower() == "true" if is_admin_raw is not None else False
    if user_id is not None:
        set_request_context(user_id=user_id)
    return AuthContext(user_id=user_id, is_admin=is_admin)


async def require_user(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if ctx.user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User authentication required")
    return ctx


async def require_admin(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return ctx


# -----------------------------------------------------------------------------
# Path parameters
# -----------------------------------------------------------------------------
def raffle_id_param(raffle_id: str) -> int:
    """Path id → positive int; anything else is a 400 validation_error."""
    return parse_raffle_id(raffle_id)


def etag_headers(payload: Dict[str, Any]) -> Dict[str, str]:
    return {"ETag": f'"{make_etag(payload)}"'}


__all__ = [
    "AuthContext",
    "get_db",
    "get_auth_context",
    "require_user",
    "require_admin",
    "raffle_id_param",
    "make_etag",
    "etag_headers",
]
