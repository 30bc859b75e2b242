# -*- coding: utf-8 -*-
# diehard/app/schemas/common_schemas.py
# =============================================================================
# Purpose:
#   Base Pydantic schemas shared by every API area: the error body, a tiny
#   success meta, and offset-page metadata used by raffle history.
#
# Invariants:
#   • The error body mirrors AppError.to_payload(): {"error", "message", "details"?}.
#   • Coins are integers on the wire; dates are ISO-8601 UTC.
#
# Prohibitions:
#   • No business logic, only declarative DTOs.
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body for the frontend."""

    error: str = Field(..., description="Short machine code (snake_case)")
    message: str = Field(..., description="Human-readable description")
    details: Optional[Dict[str, Any]] = Field(None, description="Structured details, if any")


class OkMeta(BaseModel):
    ok: bool = Field(True, description="Operation flag")
    server_time: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="UTC time the response was built (ISO-8601)",
    )


class PageMeta(BaseModel):
    """Offset page metadata: total rows and whether another page exists."""

    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)
    has_more: bool


# OpenAPI "responses=" map for the usual domain errors
ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation or limit error"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    403: {"model": ErrorResponse, "description": "Admin access required"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict with the raffle state"},
}

__all__ = ["ErrorResponse", "OkMeta", "PageMeta", "ERROR_RESPONSES"]
