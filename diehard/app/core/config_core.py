# -*- coding: utf-8 -*-
# diehard/app/core/config_core.py
# =============================================================================
# Purpose:
#   • Single configuration module of the Diehard raffle service
#     (FastAPI + async SQLAlchemy).
#   • Canonical source of every setting: app, database, logging, raffle rules,
#     auto-draw scheduler.
#
# Invariants:
#   1) Coins (Diehard Dollars) are whole integers. Ticket prices and caps are
#      positive integers; validators reject anything else at startup.
#   2) A single purchase is bounded by RAFFLE_MAX_TICKETS_PER_PURCHASE.
#   3) DATABASE_URL is normalized to an async driver in one place
#      (database_url_asyncpg()); nobody else rewrites DSNs.
#
# Self-diagnostics:
#   • initialize_runtime() validates the DSN and creates local artifacts for
#     the local environment.
#   • debug_dump() returns a secret-free view for /health and logs.
#
# Prohibitions:
#   • No network calls and no DB access from this module.
# =============================================================================

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_csv(value: object) -> List[str]:
    """Turn a CSV string 'a,b,c' into ['a', 'b', 'c'] (whitespace stripped)."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(x).strip() for x in value if str(x).strip()]
    s = str(value).strip()
    if not s:
        return []
    return [item.strip() for item in s.split(",") if item.strip()]


# =============================================================================
# Field descriptions (shown in Swagger and in debug dumps)
# =============================================================================


class _Doc:
    PROJECT_NAME = "Project name (shown in Swagger and /health)."
    ENV = "Environment: production/dev/local/test (normalized to prod/dev/local/test)."
    DEBUG = "Verbose logs and SQL echo (dev/local only)."
    APP_VERSION = "Application version (reported by /health)."

    APP_HOST = "uvicorn bind address."
    APP_PORT = "uvicorn port."
    API_PREFIX = "REST API prefix, e.g. /api."

    DATABASE_URL = (
        "Database DSN. postgres:// and postgresql:// are rewritten to "
        "postgresql+asyncpg://; sqlite+aiosqlite:// is accepted for local runs."
    )
    DB_POOL_SIZE = "SQLAlchemy connection pool size."
    DB_MAX_OVERFLOW = "Extra connections allowed at peak."

    CORS_ORIGINS = "Allowed CORS origins (CSV)."
    LOG_LEVEL = "Root log level when DEBUG is off."

    RAFFLE_DEFAULT_TICKET_PRICE = "Ticket price used when an admin does not set one."
    RAFFLE_MAX_TICKETS_PER_PURCHASE = "Upper bound on tickets bought in one call."
    RAFFLE_HISTORY_MAX_LIMIT = "Upper bound on the page size of raffle history."
    RAFFLE_AUTODRAW_ENABLED = "Whether the auto-draw worker draws overdue raffles."
    RAFFLE_AUTODRAW_TICK_SECONDS = "Interval between auto-draw ticks."


class Settings(BaseSettings):
    """Service settings read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ------------------------------- Application -----------------------------
    PROJECT_NAME: str = Field("Diehard Raffles", description=_Doc.PROJECT_NAME)
    ENV: str = Field("local", description=_Doc.ENV)
    DEBUG: bool = Field(False, description=_Doc.DEBUG)
    APP_VERSION: str = Field("1.0.0", description=_Doc.APP_VERSION)

    APP_HOST: str = Field("0.0.0.0", description=_Doc.APP_HOST)
    APP_PORT: int = Field(8000, description=_Doc.APP_PORT)
    API_PREFIX: str = Field("/api", description=_Doc.API_PREFIX)

    # ------------------------------- Database --------------------------------
    DATABASE_URL: Optional[str] = Field(None, description=_Doc.DATABASE_URL)
    DB_POOL_SIZE: int = Field(10, ge=1, description=_Doc.DB_POOL_SIZE)
    DB_MAX_OVERFLOW: int = Field(20, ge=0, description=_Doc.DB_MAX_OVERFLOW)

    # ------------------------------- HTTP / logs -----------------------------
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description=_Doc.CORS_ORIGINS,
    )
    LOG_LEVEL: str = Field("INFO", description=_Doc.LOG_LEVEL)

    # ------------------------------- Raffles ---------------------------------
    RAFFLE_DEFAULT_TICKET_PRICE: int = Field(
        10,
        gt=0,
        description=_Doc.RAFFLE_DEFAULT_TICKET_PRICE,
    )
    RAFFLE_MAX_TICKETS_PER_PURCHASE: int = Field(
        100,
        gt=0,
        description=_Doc.RAFFLE_MAX_TICKETS_PER_PURCHASE,
    )
    RAFFLE_HISTORY_MAX_LIMIT: int = Field(
        50,
        gt=0,
        description=_Doc.RAFFLE_HISTORY_MAX_LIMIT,
    )
    RAFFLE_AUTODRAW_ENABLED: bool = Field(
        True,
        description=_Doc.RAFFLE_AUTODRAW_ENABLED,
    )
    RAFFLE_AUTODRAW_TICK_SECONDS: int = Field(
        600,
        ge=5,
        description=_Doc.RAFFLE_AUTODRAW_TICK_SECONDS,
    )

    # =============================== Validators ==============================

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _v_cors_origins(cls, value: object) -> List[str]:
        return _parse_csv(value)

    @field_validator("API_PREFIX")
    @classmethod
    def _v_api_prefix(cls, value: str) -> str:
        value = (value or "").strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _v_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    # ============================ Convenience ================================

    @property
    def env_normalized(self) -> str:
        """Normalize ENV to one of: prod/dev/local/test."""
        value = (self.ENV or "").strip().lower()
        if value.startswith("prod"):
            return "prod"
        if value.startswith("dev"):
            return "dev"
        if value.startswith("loc"):
            return "local"
        if value.startswith("test"):
            return "test"
        return "prod"

    @property
    def is_prod(self) -> bool:
        return self.env_normalized == "prod"

    @property
    def is_local(self) -> bool:
        return self.env_normalized == "local"

    def database_url_asyncpg(self) -> str:
        """
        DSN for async SQLAlchemy:
          postgres://   → postgresql+asyncpg://
          postgresql:// → postgresql+asyncpg:// unless a driver is given.
        sqlite+aiosqlite:// is returned unchanged.
        """
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set (Postgres DSN required).")
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    @property
    def is_sqlite(self) -> bool:
        return bool(self.DATABASE_URL) and self.DATABASE_URL.startswith("sqlite")

    def debug_dump(self) -> Dict[str, str]:
        """Secret-free snapshot of key settings for /health and logs."""
        return {
            "env": self.env_normalized,
            "isProd": str(self.is_prod),
            "projectName": self.PROJECT_NAME,
            "version": self.APP_VERSION,
            "apiPrefix": self.API_PREFIX,
            "dbUrlSet": "yes" if bool(self.DATABASE_URL) else "no",
            "corsCount": str(len(self.CORS_ORIGINS)),
            "ticketPriceDefault": str(self.RAFFLE_DEFAULT_TICKET_PRICE),
            "maxTicketsPerPurchase": str(self.RAFFLE_MAX_TICKETS_PER_PURCHASE),
            "autodraw": (
                f"{self.RAFFLE_AUTODRAW_ENABLED}/{self.RAFFLE_AUTODRAW_TICK_SECONDS}s"
            ),
        }

    def ensure_local_artifacts(self) -> None:
        """Create .local_artifacts for the local environment (logs, scratch)."""
        if self.is_local:
            Path(".local_artifacts").mkdir(exist_ok=True)

    def initialize_runtime(self) -> None:
        """
        Single startup hook:
          • normalize the DSN early so a malformed URL fails fast;
          • create local artifacts in the local environment.
        """
        if self.DATABASE_URL:
            _ = self.database_url_asyncpg()
        self.ensure_local_artifacts()


@lru_cache()
def get_settings() -> Settings:
    """Build and cache the Settings object, running initialize_runtime()."""
    settings_obj = Settings()
    settings_obj.initialize_runtime()
    return settings_obj


__all__ = ["Settings", "get_settings"]
