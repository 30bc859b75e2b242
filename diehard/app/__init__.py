# ==============================================================================
# Diehard: FastAPI application factory
# ------------------------------------------------------------------------------
# Purpose: build and configure the FastAPI application of the raffle service:
# CORS, request correlation ids, canonical error handlers, the raffle routers
# under API_PREFIX and the /health probe.
#
# Invariants:
#   • create_app() is repeatable: every call returns a fresh, fully wired app.
#   • Coins move only in services; this module performs no money operations.
#
# Prohibitions:
#   • Does not start the auto-draw worker; it runs as a separate process
#     (diehard-autodraw).
# ==============================================================================
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config_core import get_settings
from .core.database_core import db_ping, get_engine
from .core.errors_core import setup_exception_handlers
from .core.logging_core import CorrelationIdMiddleware, get_logger
from .routes import register

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("Diehard API starting", extra={"settings": settings.debug_dump()})
    yield
    if settings.DATABASE_URL:
        await get_engine().dispose()
    logger.info("Diehard API stopped")


def create_app() -> FastAPI:
    """Create the FastAPI app with middleware, handlers and routers."""

    settings = get_settings()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=_lifespan,
    )

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(CorrelationIdMiddleware)

    setup_exception_handlers(app)
    register(app, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["health"])
    async def health() -> JSONResponse:
        """Liveness plus a SELECT 1 against the database."""

        db_ok = await db_ping()
        body: Dict[str, Any] = {
            "status": "ok" if db_ok else "degraded",
            "db": db_ok,
            "version": settings.APP_VERSION,
            "env": settings.env_normalized,
        }
        return JSONResponse(status_code=200 if db_ok else 503, content=body)

    logger.info("FastAPI app initialised", extra={"api_prefix": settings.API_PREFIX})
    return app


__all__ = ["create_app"]
