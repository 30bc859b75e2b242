# -*- coding: utf-8 -*-
# diehard/app/core/errors_core.py
# =============================================================================
# Purpose:
#   • Single error layer of the Diehard raffle service.
#   • Stable error codes for the frontend and the logs.
#   • Uniform JSON error bodies for FastAPI.
#
# Invariants:
#   • Raffle and coin services raise ONLY domain errors from this module.
#   • Clients never see technical details (stack traces, DSNs, SQL).
#   • Every known error has a stable error code and HTTP status.
#
# Protections:
#   • Any unknown exception is logged with its traceback and returned as a
#     bare "internal_error".
#   • FastAPI request validation errors become 400 "validation_error", the
#     same shape as domain validation failures.
#
# Prohibitions:
#   • No business logic here (balances, drawing, refunds).
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, cast

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from diehard.app.core.logging_core import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Base domain error
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class AppError(Exception):
    """
    Base domain exception.

    Fields:
      • code         stable machine code (snake_case).
      • message      short client-safe message.
      • http_status  default HTTP status.
      • details      safe structured details, optional.
    """

    code: str
    message: str
    http_status: int = status.HTTP_400_BAD_REQUEST
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# -----------------------------------------------------------------------------
# Domain errors
# -----------------------------------------------------------------------------
class ValidationError(AppError):
    """Malformed input: bad id, non-positive quantity, missing field."""

    def __init__(
        self,
        message: str = "Invalid data.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code="validation_error",
            message=message,
            http_status=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class NotFoundError(AppError):
    """Raffle, ticket or user is absent."""

    def __init__(
        self,
        message: str = "Resource not found.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code="not_found",
            message=message,
            http_status=status.HTTP_404_NOT_FOUND,
            details=details or {},
        )


class ConflictError(AppError):
    """
    Illegal state transition. `code` lets callers tell the terminal states
    apart (raffle_already_completed, raffle_already_cancelled, ...).
    """

    def __init__(
        self,
        message: str = "Conflict with the current state.",
        *,
        code: str = "conflict",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            http_status=status.HTTP_409_CONFLICT,
            details=details or {},
        )


class LimitExceededError(AppError):
    """Per-buyer ticket cap or per-purchase quantity cap exceeded."""

    def __init__(
        self,
        message: str = "Limit exceeded.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code="limit_exceeded",
            message=message,
            http_status=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class InsufficientBalanceError(AppError):
    """Buyer cannot cover the debit."""

    def __init__(
        self,
        message: str = "Insufficient balance.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code="insufficient_balance",
            message=message,
            http_status=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class PartialFailureError(AppError):
    """
    The operation completed but some per-item steps failed (refund credits).
    details carry the success counters and the list of failures.
    """

    def __init__(
        self,
        message: str = "Operation completed with failures.",
        *,
        failures: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged: Dict[str, Any] = dict(details or {})
        merged["failures"] = list(failures or [])
        super().__init__(
            code="partial_failure",
            message=message,
            http_status=status.HTTP_207_MULTI_STATUS,
            details=merged,
        )

    @property
    def failures(self) -> List[Dict[str, Any]]:
        return cast(List[Dict[str, Any]], self.details.get("failures", []))


# -----------------------------------------------------------------------------
# Exception → (status_code, payload)
# -----------------------------------------------------------------------------
def normalize_exception(exc: BaseException) -> Tuple[int, Dict[str, Any]]:
    """
    Map any exception onto the canonical HTTP response.

      • AppError               → own http_status + to_payload().
      • RequestValidationError → 400 + {"error": "validation_error", ...}.
      • HTTPException          → status_code + {"error": "http_error", ...}.
      • anything else          → 500 + {"error": "internal_error"}.
    """
    if isinstance(exc, AppError):
        return exc.http_status, exc.to_payload()

    if isinstance(exc, RequestValidationError):
        return (
            status.HTTP_400_BAD_REQUEST,
            {
                "error": "validation_error",
                "message": "Request validation failed.",
                "details": {"errors": jsonable_encoder(exc.errors())},
            },
        )

    if isinstance(exc, HTTPException):
        details: Dict[str, Any] = {}
        if isinstance(exc.detail, str):
            msg = exc.detail
        elif isinstance(exc.detail, dict):
            details = cast(Dict[str, Any], exc.detail)
            msg = details.get("message") or details.get("detail") or "HTTP error."
        else:
            msg = "HTTP error."
        payload: Dict[str, Any] = {"error": "http_error", "message": msg}
        if details:
            payload["details"] = details
        return exc.status_code, payload

    logger.exception("Unhandled exception", exc_info=exc, extra={"error_type": type(exc).__name__})
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"error": "internal_error", "message": "Internal server error."},
    )


# -----------------------------------------------------------------------------
# FastAPI handlers
# -----------------------------------------------------------------------------
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code, payload = normalize_exception(exc)
    logger.warning(
        "AppError handled",
        extra={"path": request.url.path, "error": exc.code, "status": status_code},
    )
    return JSONResponse(status_code=status_code, content=payload)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    status_code, payload = normalize_exception(exc)
    logger.info("Request validation failed", extra={"path": request.url.path})
    return JSONResponse(status_code=status_code, content=payload)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    status_code, payload = normalize_exception(exc)
    return JSONResponse(
        status_code=status_code,
        content=payload,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: the traceback goes to the log, the client gets internal_error."""
    status_code, payload = normalize_exception(exc)
    logger.error(
        "Unhandled exception handled by generic handler",
        extra={"path": request.url.path, "status": status_code, "exc_type": type(exc).__name__},
    )
    return JSONResponse(status_code=status_code, content=payload)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register every handler. Call once from create_app()."""
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered for AppError/RequestValidationError/HTTPException/Exception")


__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "LimitExceededError",
    "InsufficientBalanceError",
    "PartialFailureError",
    "normalize_exception",
    "setup_exception_handlers",
]
