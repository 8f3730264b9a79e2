"""Rate-limited, retrying ``httpx`` client used by the carrier adapters."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import Retry, RetryTransport

from shipsync.config.http_resilience import RateLimit, ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

__all__ = [
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "RetryPolicy",
    "build_retry",
]

log = getLogger(__name__)

RETRYABLE_EXCEPTIONS: tuple[type[httpx.HTTPError], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.attempts,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        backoff_jitter=policy.backoff_jitter,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(sorted(policy.retry_methods)),
        status_forcelist=tuple(sorted(policy.retry_statuses)),
        retry_on_exceptions=RETRYABLE_EXCEPTIONS,
    )


class ResilientClient:
    """Async HTTP client with transport retries, a shared rate limit and default headers.

    Default headers are merged into every request here rather than on the underlying
    ``httpx.AsyncClient`` so that per-request headers (the FedEx bearer token) override
    them predictably.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._headers = dict(config.headers)
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._client = httpx.AsyncClient(
            timeout=config.timeout(),
            transport=RetryTransport(retry=build_retry(config.retry)),
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def url(self, path: str) -> str:
        """Join ``path`` onto the configured base URL (absolute URLs pass through)."""

        if path.startswith(("http://", "https://")) or not self.config.base_url:
            return path
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        merged = {**self._headers, **(headers or {})}
        url = self.url(path)
        if self._limiter is None:
            response = await self._client.request(method, url, headers=merged, **kwargs)
        else:
            async with self._limiter:
                response = await self._client.request(method, url, headers=merged, **kwargs)
        log.debug("%s %s %s -> %s", self.config.name, method, url, response.status_code)
        return response

    async def post(
        self,
        path: str,
        *,
        json: object | None = None,
        data: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if json is not None:
            return await self.request("POST", path, json=json, headers=headers)
        return await self.request("POST", path, data=data, headers=headers)
