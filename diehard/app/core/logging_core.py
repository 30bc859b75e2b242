# -*- coding: utf-8 -*-
# diehard/app/core/logging_core.py
# =============================================================================
# Purpose:
#   Central logging setup of the Diehard raffle service:
#   • format and handlers;
#   • request correlation (request_id, user_id) via contextvars;
#   • redaction of secrets;
#   • helpers for modules (get_logger, logger_with).
#
# Invariants:
#   • One log style across the app:
#       - prod: JSON (structured, for aggregators),
#       - dev/local/test: human-readable lines.
#   • Logging never brings the app down: a filter that fails lets the
#     record through untouched.
#   • Money-moving operations log env, svc, rid and uid.
#
# Prohibitions:
#   • No user secrets in logs (passwords, tokens, DSN credentials).
#   • No network or blocking calls inside formatters/filters.
# =============================================================================

from __future__ import annotations

import contextvars
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, MutableMapping, Optional, Tuple

from pythonjsonlogger.json import JsonFormatter

from diehard.app.core.config_core import get_settings

ASGIApp = Callable[
    [Mapping[str, Any], Callable[..., Awaitable[Any]], Callable[..., Awaitable[Any]]],
    Awaitable[Any],
]


# -----------------------------------------------------------------------------
# Correlation context (contextvars), safe for async code
# -----------------------------------------------------------------------------
_rid_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "rid",
    default=None,
)  # request_id
_uid_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "uid",
    default=None,
)  # user_id, kept as a string


def set_request_context(
    *,
    request_id: Optional[str] = None,
    user_id: Optional[int | str] = None,
) -> None:
    """
    Bind correlation fields to the current async context.

    Called by the middleware and by auth dependencies so that every record
    of a request carries request_id / user_id.
    """
    if request_id is not None:
        _rid_var.set(str(request_id))
    if user_id is not None:
        _uid_var.set(str(user_id))


def clear_request_context() -> None:
    """Reset correlation fields once a request or task is finished."""
    _rid_var.set(None)
    _uid_var.set(None)


# -----------------------------------------------------------------------------
# Filters
# -----------------------------------------------------------------------------
class ContextFilter(logging.Filter):
    """
    Injects structured fields into each record:

      • env: normalized environment (local/dev/prod/test);
      • svc: service name (PROJECT_NAME);
      • rid: request_id;
      • uid: user_id when known.
    """

    def __init__(self, env: str, service: str) -> None:
        super().__init__()
        self._env = env
        self._svc = service

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "env"):
            record.env = self._env
        if not hasattr(record, "svc"):
            record.svc = self._svc
        if not hasattr(record, "rid"):
            record.rid = _rid_var.get() or "-"
        if not hasattr(record, "uid"):
            record.uid = _uid_var.get() or "-"
        return True


class RedactingFilter(logging.Filter):
    """
    Masks configured secret values (not just key names) inside the message
    and its arguments.
    """

    MASK = "****"
    SECRET_KEYS: Tuple[str, ...] = ("DATABASE_URL",)

    def __init__(self, settings_obj: object) -> None:
        super().__init__()
        self._secrets: list[str] = []
        for key in self.SECRET_KEYS:
            val = getattr(settings_obj, key, None)
            if val and isinstance(val, str):
                self._secrets.append(val)

    def _redact_text(self, text: str) -> str:
        if not text:
            return text
        redacted = text
        for secret in self._secrets:
            if secret in redacted:
                redacted = redacted.replace(secret, self.MASK)
        return redacted

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not self._secrets:
            return True
        try:
            if isinstance(record.msg, str):
                record.msg = self._redact_text(record.msg)
            if isinstance(record.args, tuple):
                record.args = tuple(
                    self._redact_text(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
        except (TypeError, ValueError):
            # a record we cannot rewrite is still emitted
            pass
        return True


# -----------------------------------------------------------------------------
# Formatters
# -----------------------------------------------------------------------------
class DevFormatter(logging.Formatter):
    """
    Human-readable format for local/dev/test.

    2026-10-18 12:00:00 | INFO     | Diehard Raffles | diehard.app.x | rid=... uid=... | msg
    """

    def __init__(self) -> None:
        super().__init__(
            fmt=(
                "%(asctime)s | %(levelname)-8s | %(svc)s | %(name)s | "
                "rid=%(rid)s uid=%(uid)s | %(message)s"
            ),
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class ServiceJsonFormatter(JsonFormatter):
    """
    JSON formatter for prod. Output keys are renamed to a stable contract:

        {"time", "level", "service", "logger", "env", "rid", "uid", "msg", ...extra}
    """

    _RENAMES = {
        "asctime": "time",
        "levelname": "level",
        "svc": "service",
        "name": "logger",
        "message": "msg",
    }

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(svc)s %(name)s %(env)s %(rid)s %(uid)s %(message)s",
            rename_fields=self._RENAMES,
        )


# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------
def setup_logging() -> None:
    """
    Configure logging once:

      • root logger level and handlers;
      • stdout handler (plus a file in local);
      • context and redaction filters;
      • uvicorn/fastapi loggers routed through root.
    """
    settings = get_settings()
    env = settings.env_normalized
    debug = bool(settings.DEBUG)
    service = settings.PROJECT_NAME

    root = logging.getLogger()
    root.handlers.clear()
    level = logging.DEBUG if debug else logging.getLevelName(settings.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)

    ctx_filter = ContextFilter(env=env, service=service)
    redact_filter = RedactingFilter(settings_obj=settings)

    console_handler = logging.StreamHandler(sys.stdout)
    if env == "prod":
        formatter: logging.Formatter = ServiceJsonFormatter()
    else:
        formatter = DevFormatter()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ctx_filter)
    console_handler.addFilter(redact_filter)
    root.addHandler(console_handler)

    if env == "local":
        logs_dir = Path(".local_artifacts") / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(logs_dir / "app.log", encoding="utf-8")
        file_handler.setFormatter(DevFormatter())
        file_handler.addFilter(ctx_filter)
        file_handler.addFilter(redact_filter)
        root.addHandler(file_handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.setLevel(level)
        lg.propagate = True

    if debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={"details": {"env": env, "debug": debug, "level": logging.getLevelName(level)}},
    )


class _MergingAdapter(logging.LoggerAdapter):
    """LoggerAdapter whose bound fields merge with the call-site extra= (call site wins)."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: Optional[str] = None, **extra: Any) -> logging.Logger:
    """
    Return a logger; with keyword fields, wrap it in a LoggerAdapter.

        log = get_logger(__name__, component="autodraw")
    """
    base = logging.getLogger(name)
    if not extra:
        return base
    return _MergingAdapter(base, extra)  # type: ignore[return-value]


def logger_with(logger: logging.Logger, **extra: Any) -> logging.Logger:
    """Wrap an existing logger with extra fields (log = logger_with(log, raffle_id=7))."""
    return _MergingAdapter(logger, extra)  # type: ignore[return-value]


# -----------------------------------------------------------------------------
# ASGI middleware for correlation ids
# -----------------------------------------------------------------------------
class CorrelationIdMiddleware:
    """
    Reads X-Request-ID (or mints a uuid4 hex) into contextvars and echoes it
    back on the response. user_id is bound later by the auth dependencies.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[Any]],
        send: Callable[..., Awaitable[Any]],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        raw_headers: MutableMapping[bytes, bytes] = dict(scope.get("headers") or [])
        headers: Dict[str, str] = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in raw_headers.items()
        }
        rid = headers.get("x-request-id") or uuid.uuid4().hex
        set_request_context(request_id=rid)

        async def send_wrapper(message: Mapping[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers_list: list[Tuple[bytes, bytes]] = list(message.get("headers") or [])
                headers_list.append((b"x-request-id", rid.encode("latin-1")))
                new_message: Dict[str, Any] = dict(message)
                new_message["headers"] = headers_list
                await send(new_message)
                return
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_request_context()


setup_logging()

__all__ = [
    "setup_logging",
    "get_logger",
    "logger_with",
    "set_request_context",
    "clear_request_context",
    "CorrelationIdMiddleware",
]
