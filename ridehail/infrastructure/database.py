"""
Async SQLAlchemy engine, session factory and transaction scope.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.
The pool is deliberately small and fixed: the transition engine takes
row locks in a fixed order (ride, then driver) and trades throughput for
lock-contention safety.  Do not grow it without revisiting that order.

The ``Database`` object is a process-scoped resource with an explicit
``init_database`` / ``dispose_database`` lifecycle.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ridehail.config import Settings, settings

logger = logging.getLogger(__name__)

SERIALIZABLE = "SERIALIZABLE"


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class Database:
    def __init__(
        self,
        url: str,
        *,
        checkout_warning_seconds: float = 30.0,
        **engine_kwargs,
    ):
        self.url = url
        self.checkout_warning_seconds = checkout_warning_seconds
        self.engine: AsyncEngine = create_async_engine(
            url, echo=False, **engine_kwargs
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "Database":
        engine_kwargs = {
            "pool_size": config.db_pool_size,
            "max_overflow": config.db_max_overflow,
            "pool_timeout": config.db_pool_timeout_seconds,
            "pool_pre_ping": True,
        }
        if config.database_url.startswith("postgresql+asyncpg"):
            engine_kwargs["connect_args"] = {
                "command_timeout": config.db_statement_timeout_seconds
            }
        return cls(
            config.database_url,
            checkout_warning_seconds=config.db_checkout_warning_seconds,
            **engine_kwargs,
        )

    def session(self) -> AsyncSession:
        """A plain session for lock-free reads."""
        return self.session_factory()

    @asynccontextmanager
    async def transaction(
        self, isolation_level: Optional[str] = SERIALIZABLE
    ) -> AsyncIterator[AsyncSession]:
        """Yield a session pinned to one connection at *isolation_level*.

        ``None`` keeps the driver default isolation.

        Commits when the block exits cleanly.  On any error a rollback is
        attempted (its own failure is logged and ignored) and the original
        error is re-raised.
        """
        async with self.session_factory() as session:
            started = time.monotonic()
            try:
                if isolation_level is not None:
                    await session.connection(
                        execution_options={"isolation_level": isolation_level}
                    )
                yield session
                await session.commit()
            except BaseException:
                try:
                    await session.rollback()
                except Exception:
                    logger.exception("Rollback failed; ignoring")
                raise
            finally:
                held = time.monotonic() - started
                if held > self.checkout_warning_seconds:
                    logger.warning(
                        "Connection held by one transaction for %.1fs", held
                    )

    def pool_stats(self) -> dict[str, int]:
        """Snapshot of the connection pool (empty for pools without counters)."""
        pool = self.engine.pool
        stats: dict[str, int] = {}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            counter = getattr(pool, name, None)
            if callable(counter):
                stats[name] = counter()
        return stats

    async def dispose(self) -> None:
        await self.engine.dispose()


# ── Process-scoped lifecycle ──────────────────────────────────────────

_database: Optional[Database] = None


def init_database(config: Settings = settings) -> Database:
    global _database
    if _database is None:
        _database = Database.from_settings(config)
        logger.info("Database pool initialised (size=%d)", config.db_pool_size)
    return _database


def get_database() -> Database:
    return init_database()


async def dispose_database() -> None:
    global _database
    if _database is not None:
        await _database.dispose()
        _database = None
        logger.info("Database pool disposed")
