"""Port for carrier tracking lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shipsync.domain.model import CarrierTrackResult


@runtime_checkable
class CarrierClient(Protocol):
    """Fetch carrier-reported generations for a tracking number.

    Implementations raise ``CarrierUnavailableError`` for transient failures (network,
    authentication, 5xx) and return an empty list when the carrier does not know the
    tracking number.
    """

    async def track(
        self,
        tracking_number: str,
        known_generation_id: str | None = None,
    ) -> list[CarrierTrackResult]: ...
