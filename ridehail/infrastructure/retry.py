"""
Transaction retry policy.

Serializable transactions in PostgreSQL may abort with SQLSTATE
``40001`` (serialization failure) or ``40P01`` (deadlock detected).
Those are the only errors re-run; everything else propagates on the
first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError

from ridehail.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def sqlstate_of(exc: BaseException) -> Optional[str]:
    """Dig the SQLSTATE out of a wrapped driver error, if any."""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(
            candidate, "pgcode", None
        )
        if code:
            return str(code)
    return None


def is_transient_conflict(exc: BaseException) -> bool:
    return isinstance(exc, DBAPIError) and sqlstate_of(exc) in RETRYABLE_SQLSTATES


def exponential_backoff(
    base: float = 0.1, jitter: float = 0.1
) -> Callable[[int], float]:
    """Delay before retry *attempt* (1-based): base x 2^(attempt-1) + jitter."""

    def delay(attempt: int) -> float:
        return base * (2 ** (attempt - 1)) + random.uniform(0, jitter)

    return delay


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
    is_retryable: Callable[[BaseException], bool] = is_transient_conflict
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=config.transaction_max_attempts,
            backoff=exponential_backoff(
                config.transaction_backoff_base_seconds,
                config.transaction_backoff_jitter_seconds,
            ),
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await ``operation()``; re-run it on retryable errors."""
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    "Transient conflict (sqlstate=%s) on attempt %d/%d; retrying in %.3fs",
                    sqlstate_of(exc),
                    attempt,
                    self.max_attempts,
                    delay,
                )
                await self.sleep(delay)
                attempt += 1
