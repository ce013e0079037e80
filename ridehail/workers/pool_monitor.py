"""
Background Pool Monitor
=======================

Runs every ``POOL_STATS_INTERVAL_SECONDS`` (default 60 s).

The connection pool is small and fixed on purpose, so the interesting
signal is pressure: callers queueing for a connection.  Each cycle
snapshots the pool and logs a warning when every connection is checked
out or overflow connections are in use; otherwise it logs at debug.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ridehail.config import settings
from ridehail.infrastructure.database import Database

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_pool_monitor(database: Database) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(database))
    logger.info(
        "Pool monitor started (interval=%ds)", settings.pool_stats_interval_seconds
    )


async def stop_pool_monitor() -> None:
    global _task, _stop_event
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    _task = None
    _stop_event = None
    logger.info("Pool monitor stopped")


def check_pool(database: Database) -> Optional[dict[str, int]]:
    """Log one snapshot.  Returns it, or None for pools without counters."""
    stats = database.pool_stats()
    if not stats:
        return None
    saturated = stats.get("checkedin", 0) == 0 and stats.get("checkedout", 0) >= stats.get(
        "size", 0
    )
    if stats.get("overflow", 0) > 0 or saturated:
        logger.warning("Database pool under pressure: %s", stats)
    else:
        logger.debug("Database pool: %s", stats)
    return stats


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(database: Database) -> None:
    """Periodic loop: snapshot the pool then sleep."""
    assert _stop_event is not None
    stop_event = _stop_event
    while not stop_event.is_set():
        try:
            check_pool(database)
        except Exception:
            logger.exception("Unhandled error in pool monitor")
        try:
            await asyncio.wait_for(
                stop_event.wait(), timeout=settings.pool_stats_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle
