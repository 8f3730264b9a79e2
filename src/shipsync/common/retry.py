"""Retry-with-backoff helper for awaitable operations."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """Exponential backoff settings: ``backoff_factor * 2 ** (attempt - 1)`` seconds."""

    attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    backoff_jitter: float = 0.25

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("BackoffPolicy.attempts must be at least 1")
        if self.backoff_factor < 0 or self.max_backoff_wait < 0 or self.backoff_jitter < 0:
            raise ValueError("BackoffPolicy wait values must be non-negative")

    def delay_for(self, attempt: int, *, rng: Callable[[], float] = random.random) -> float:
        """Return the wait after the ``attempt``-th failure (1-based)."""

        base = self.backoff_factor * (2 ** (attempt - 1))
        jitter = base * self.backoff_jitter * rng()
        return min(base + jitter, self.max_backoff_wait)


async def retry_with_backoff[T](
    operation: Callable[[], Awaitable[T]],
    *,
    policy: BackoffPolicy,
    retry_on: tuple[type[BaseException], ...],
    description: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds or ``policy.attempts`` is exhausted.

    Only exceptions listed in ``retry_on`` are retried; anything else propagates
    immediately. The last retryable exception is re-raised once attempts run out.
    """

    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.attempts:
                log.warning("%s failed after %s attempt(s): %s", description, attempt, exc)
                raise
            delay = policy.delay_for(attempt)
            log.info(
                "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                description,
                attempt,
                policy.attempts,
                delay,
                exc,
            )
            await sleep(delay)
            attempt += 1
