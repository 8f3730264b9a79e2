"""Consensus between the carrier's status header and its event history."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from shipsync.domain.model import TERMINAL_STATUSES, ShipmentStatus

from .normalize import clean_code, header_coded_delivered, normalize_header

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from shipsync.domain.model import CarrierTrackResult, SubsidiaryPolicy

    from .normalize import NormalizedEvent

log = getLogger(__name__)

DEFAULT_STATUS_WEIGHTS: Final[Mapping[ShipmentStatus, int]] = MappingProxyType(
    {
        ShipmentStatus.DELIVERED: 10,
        ShipmentStatus.DELIVERED_BY_CARRIER: 10,
        ShipmentStatus.REJECTED: 9,
        ShipmentStatus.WRONG_ADDRESS: 9,
        ShipmentStatus.CUSTOMER_UNAVAILABLE: 9,
        ShipmentStatus.RETURNED_TO_CARRIER: 9,
        ShipmentStatus.ABANDONED_RETURN: 9,
        ShipmentStatus.EN_ROUTE: 8,
        ShipmentStatus.HANDED_TO_CARRIER: 6,
        ShipmentStatus.NOT_DELIVERED: 5,
        ShipmentStatus.PENDING: 4,
        ShipmentStatus.IN_WAREHOUSE: 4,
        ShipmentStatus.AT_PICKUP_LOCATION: 4,
        ShipmentStatus.ARRIVED_LATE: 3,
        ShipmentStatus.RESCHEDULE_REQUESTED: 3,
        ShipmentStatus.IN_TRANSIT: 2,
        ShipmentStatus.CARRIER_STATION: 2,
        ShipmentStatus.PICKED_UP: 1,
        ShipmentStatus.UNKNOWN: 0,
    }
)
DEFAULT_EXCEPTION_TIER: Final[int] = 9


@dataclass(frozen=True, slots=True)
class StatusWeights:
    """Priority of each status when two signals disagree.

    ``exception_tier`` is the weight from which a persisted status is protected against
    being overwritten by a lower-weighted one.
    """

    weights: Mapping[ShipmentStatus, int] = field(default_factory=lambda: DEFAULT_STATUS_WEIGHTS)
    exception_tier: int = DEFAULT_EXCEPTION_TIER

    def weight(self, status: ShipmentStatus) -> int:
        return self.weights.get(status, 0)

    @classmethod
    def with_overrides(
        cls,
        overrides: Mapping[str, int],
        *,
        exception_tier: int = DEFAULT_EXCEPTION_TIER,
    ) -> StatusWeights:
        """Return the default table with ``overrides`` (status value -> weight) applied."""

        merged = dict(DEFAULT_STATUS_WEIGHTS)
        for name, value in overrides.items():
            try:
                status = ShipmentStatus(name)
            except ValueError as exc:
                raise ValueError(f"Unknown shipment status in weight overrides: {name}") from exc
            merged[status] = value
        return cls(weights=MappingProxyType(merged), exception_tier=exception_tier)


@dataclass(frozen=True, slots=True, kw_only=True)
class Resolution:
    """How the target status for one shipment was reached."""

    header_status: ShipmentStatus
    history_status: ShipmentStatus | None
    target: ShipmentStatus
    delivered_override: bool = False
    external_handoff: bool = False


def history_status(
    events: Sequence[NormalizedEvent],
    *,
    created_at: datetime,
    weights: StatusWeights,
) -> ShipmentStatus | None:
    """Highest-weighted status among ``events`` at or after ``created_at``.

    ``events`` are chronological, so on equal weight the later event wins.
    """

    best: ShipmentStatus | None = None
    for event in events:
        if event.timestamp < created_at:
            continue
        if best is None or weights.weight(event.status) >= weights.weight(best):
            best = event.status
    return best


def _handoff_signalled(result: CarrierTrackResult, policy: SubsidiaryPolicy) -> bool:
    # Only exception codes count; event type OD is the routine "on vehicle" scan.
    codes = {clean_code(result.header.exception_code)}
    codes.update(clean_code(raw.exception_code) for raw in result.scan_events)
    codes.discard("")
    return not codes.isdisjoint(clean_code(code) for code in policy.external_handoff_codes)


def resolve_target(
    result: CarrierTrackResult,
    events: Sequence[NormalizedEvent],
    *,
    created_at: datetime,
    policy: SubsidiaryPolicy,
    weights: StatusWeights,
) -> Resolution:
    """Compute the status the carrier data says ``result``'s shipment should be in.

    ``events`` are the new, chronologically ordered ledger candidates for this shipment.
    """

    header = normalize_header(result.header)
    history = history_status(events, created_at=created_at, weights=weights)
    if history is not None and weights.weight(history) > weights.weight(header):
        target = history
    else:
        target = header

    delivered_override = header_coded_delivered(result.header) or any(
        event.coded_delivered for event in events if event.timestamp >= created_at
    )
    if delivered_override:
        target = ShipmentStatus.DELIVERED

    external_handoff = False
    if policy.track_external_delivery and _handoff_signalled(result, policy):
        external_handoff = True
        if target is ShipmentStatus.DELIVERED:
            target = ShipmentStatus.DELIVERED_BY_CARRIER
        elif target not in TERMINAL_STATUSES:
            target = ShipmentStatus.HANDED_TO_CARRIER

    log.debug(
        "Resolved %s: header=%s history=%s target=%s",
        result.tracking_number,
        header,
        history,
        target,
    )
    return Resolution(
        header_status=header,
        history_status=history,
        target=target,
        delivered_override=delivered_override,
        external_handoff=external_handoff,
    )
