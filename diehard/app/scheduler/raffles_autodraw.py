# ============================================================================
# Diehard: scheduler.raffles_autodraw
# -----------------------------------------------------------------------------
# Purpose: periodic tick that draws every active raffle whose draw time has
#          passed.
#
# Invariants:
#   • The draw itself is svc_draw_winner; concurrent workers or an admin
#     force-draw racing this tick lose with a ConflictError, which is an
#     expected outcome (INFO, counted as skipped).
#   • Each raffle is drawn in its own session: one failure never blocks the
#     remaining raffles of the tick.
#   • Tick every RAFFLE_AUTODRAW_TICK_SECONDS with jitter; the loop never
#     exits on a tick failure.
# ============================================================================
from __future__ import annotations

import asyncio
from datetime import datetime
from random import randint
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config_core import get_settings
from ..core.database_core import lifespan_session
from ..core.errors_core import ConflictError
from ..core.logging_core import get_logger
from ..core.utils_core import utcnow
from ..services.raffle_settlement_service import svc_draw_winner
from ..services.raffles_service import svc_get_raffles_ready_for_draw

logger = get_logger(__name__)

JITTER_SECONDS = 15


async def run_once(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    One tick: draw every overdue active raffle.

    Returns counters {checked, drawn, cancelled, skipped, failed}; cancelled
    counts raffles that reached their draw time without a single ticket.
    """
    now = now or utcnow()
    summary = {"checked": 0, "drawn": 0, "cancelled": 0, "skipped": 0, "failed": 0}

    async with lifespan_session(session_factory) as db:
        ready = await svc_get_raffles_ready_for_draw(db, now)
        raffle_ids = [r.id for r in ready]

    for raffle_id in raffle_ids:
        summary["checked"] += 1
        try:
            async with lifespan_session(session_factory) as db:
                result = await svc_draw_winner(db, raffle_id, now=now)
        except ConflictError as exc:
            summary["skipped"] += 1
            logger.info(
                "autodraw skipped raffle already settled",
                extra={"raffle_id": raffle_id, "error": exc.code},
            )
            continue
        except Exception:  # noqa: BLE001 - logged, the tick moves on
            summary["failed"] += 1
            logger.exception("autodraw failed", extra={"raffle_id": raffle_id})
            continue

        if result["outcome"] == "completed":
            summary["drawn"] += 1
        else:
            summary["cancelled"] += 1

    logger.info("autodraw tick", extra={**summary, "at": now.isoformat()})
    return summary


async def _run_once_guarded(session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
    if not get_settings().RAFFLE_AUTODRAW_ENABLED:
        logger.info("autodraw disabled, tick skipped")
        return
    try:
        await run_once(session_factory)
    except Exception:  # noqa: BLE001 - the loop must survive a failed tick
        logger.exception("autodraw tick failed")


async def run_forever(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    *,
    sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    max_ticks: Optional[int] = None,
) -> None:
    """Tick loop with jitter. max_ticks bounds the loop (tests, one-shot runs)."""

    base_sleep = get_settings().RAFFLE_AUTODRAW_TICK_SECONDS
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        await _run_once_guarded(session_factory)
        ticks += 1
        jitter = randint(-JITTER_SECONDS, JITTER_SECONDS)
        await sleeper(max(1, base_sleep + jitter))


def main() -> None:
    """CLI entry point (diehard-autodraw)."""

    asyncio.run(run_forever())


if __name__ == "__main__":
    main()
