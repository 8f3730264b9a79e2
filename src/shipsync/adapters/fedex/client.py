"""HTTP client for the FedEx Track API."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from shipsync.adapters.http_resilience import ResilientClient
from shipsync.domain.reconciliation.errors import CarrierPayloadError, CarrierUnavailableError

from .schema import ApiErrorResponse, OAuthTokenResponse, TrackingResponse
from .translator import translate_response

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from shipsync.config.fedex import FedExConfig
    from shipsync.config.http_resilience import ResilienceConfig
    from shipsync.domain.model import CarrierTrackResult

log = getLogger(__name__)

TOKEN_REFRESH_MARGIN_SECONDS = 300.0


@dataclass(frozen=True, slots=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at - TOKEN_REFRESH_MARGIN_SECONDS


def _describe_error(response: httpx.Response) -> str:
    try:
        payload = ApiErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return f"HTTP {response.status_code}"
    codes = ", ".join(error.code for error in payload.errors)
    return f"HTTP {response.status_code} ({codes})" if codes else f"HTTP {response.status_code}"


class FedExClient:
    """Track shipments through the FedEx Track API.

    The OAuth access token lives in memory until five minutes before it expires and is
    discarded as soon as FedEx answers 401. Use the client as an async context manager
    to share one connection pool across many lookups; otherwise each lookup opens its own.
    """

    def __init__(
        self,
        *,
        config: FedExConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._clock = clock
        self._token: AccessToken | None = None
        self._token_lock = asyncio.Lock()
        self._shared: ResilientClient | None = None

    async def __aenter__(self) -> FedExClient:
        self._shared = self._client_factory(self._resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._shared is not None:
            await self._shared.aclose()
        self._shared = None

    def invalidate_token(self) -> None:
        if self._token is not None:
            log.warning("Discarding cached FedEx access token")
        self._token = None

    async def track(
        self,
        tracking_number: str,
        known_generation_id: str | None = None,
    ) -> list[CarrierTrackResult]:
        if self._shared is not None:
            return await self._track(self._shared, tracking_number, known_generation_id)
        async with self._client_factory(self._resilience) as client:
            return await self._track(client, tracking_number, known_generation_id)

    async def _track(
        self,
        client: ResilientClient,
        tracking_number: str,
        known_generation_id: str | None,
    ) -> list[CarrierTrackResult]:
        token = await self._access_token(client)
        tracking_info: dict[str, str] = {"trackingNumber": tracking_number}
        if known_generation_id:
            tracking_info["trackingNumberUniqueId"] = known_generation_id
        body: dict[str, Any] = {
            "includeDetailedScans": True,
            "trackingInfo": [{"trackingNumberInfo": tracking_info}],
        }
        log.debug("Tracking %s (generation %s)", tracking_number, known_generation_id)

        try:
            response = await client.post(
                self._config.tracking_endpoint,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise CarrierUnavailableError(f"FedEx request failed: {exc}") from exc

        if response.status_code == HTTPStatus.UNAUTHORIZED:
            self.invalidate_token()
            raise CarrierUnavailableError("FedEx rejected the access token")
        if response.status_code == HTTPStatus.NOT_FOUND:
            return []
        if (
            response.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR
            or response.status_code == HTTPStatus.TOO_MANY_REQUESTS
        ):
            raise CarrierUnavailableError(f"FedEx unavailable: {_describe_error(response)}")
        if response.is_error:
            raise CarrierPayloadError(f"FedEx rejected the request: {_describe_error(response)}")

        try:
            payload = TrackingResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CarrierPayloadError(f"Unexpected FedEx tracking payload: {exc}") from exc
        return translate_response(payload, tracking_number)

    async def _access_token(self, client: ResilientClient) -> str:
        if self._token is not None and self._token.is_valid(self._clock()):
            return self._token.value
        # Workers that find no token wait for the first one to fetch it.
        async with self._token_lock:
            now = self._clock()
            if self._token is not None and self._token.is_valid(now):
                return self._token.value
            return await self._request_token(client, now)

    async def _request_token(self, client: ResilientClient, now: float) -> str:
        log.info("Requesting FedEx access token")
        try:
            response = await client.post(
                self._config.authentication_endpoint,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._config.client_id,
                    "client_secret": self._config.client_secret,
                },
            )
        except httpx.HTTPError as exc:
            raise CarrierUnavailableError(f"FedEx authentication failed: {exc}") from exc
        if response.is_error:
            raise CarrierUnavailableError(
                f"FedEx authentication failed: {_describe_error(response)}"
            )

        try:
            token = OAuthTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CarrierPayloadError(f"Unexpected FedEx token payload: {exc}") from exc
        self._token = AccessToken(value=token.access_token, expires_at=now + token.expires_in)
        return token.access_token

