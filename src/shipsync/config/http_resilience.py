"""Transport settings for the carrier HTTP clients."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Transport-level retries applied by ``httpx-retries``.

    Only failures that never reached the carrier's application layer are retried here
    (timeouts, dropped connections, gateway errors). Whole lookups are retried by the
    reconciliation engine with its own backoff.
    """

    attempts: int = 2
    backoff_factor: float = 0.25
    max_backoff_wait: float = 5.0
    backoff_jitter: float = 0.5
    respect_retry_after_header: bool = True
    retry_statuses: frozenset[int] = frozenset({502, 503, 504})
    retry_methods: frozenset[str] = frozenset({"GET", "POST"})

    def __post_init__(self) -> None:
        if self.attempts < 0:
            raise ValueError("RetryPolicy.attempts must not be negative")


@dataclass(slots=True, frozen=True)
class RateLimit:
    """At most ``max_calls`` requests per ``per_seconds`` window."""

    max_calls: int
    per_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_calls < 1 or self.per_seconds <= 0:
            raise ValueError("RateLimit needs max_calls >= 1 and a positive window")


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    headers: Mapping[str, str] = field(default_factory=dict[str, str])

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.timeout_seconds,
            connect=self.connect_timeout_seconds or self.timeout_seconds,
        )
