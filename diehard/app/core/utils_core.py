# -*- coding: utf-8 -*-
# diehard/app/core/utils_core.py
# =============================================================================
# Purpose:
#   • Core helpers with no FastAPI/SQLAlchemy dependencies.
#   • UTC time handling: every timestamp the service stores or compares is
#     timezone-aware UTC.
#   • Small safe converters (ISO dates, positive integers, clamping).
#
# Invariants:
#   • Pure functions: no I/O, no side effects.
#   • Naive datetimes coming back from the database are UTC by convention
#     (sqlite drops tzinfo); as_utc() restores it.
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current UTC time with tzinfo=UTC."""
    return datetime.now(tz=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(raw: Any) -> Optional[datetime]:
    """
    Lenient ISO-8601 parser.

    Returns an aware UTC datetime, or None for empty/invalid input.
    Accepts datetime instances, "2026-08-27", "2026-08-27T12:30:00" and
    "2026-08-27T12:30:00Z".
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    if not isinstance(raw, str):
        return None
    candidate = raw.strip()
    if "T" not in candidate and ":" not in candidate and " " not in candidate:
        candidate = f"{candidate}T00:00:00"
    try:
        parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(parsed)


def to_positive_int(value: Any) -> Optional[int]:
    """int(value) when it is a whole number > 0, else None. Booleans are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def clamp(value: int, min_value: int, max_value: int) -> int:
    return max(min_value, min(int(value), max_value))


__all__ = ["utcnow", "as_utc", "parse_iso_datetime", "to_positive_int", "clamp"]
