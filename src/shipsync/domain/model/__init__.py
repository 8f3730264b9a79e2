"""Public domain model surface."""

from __future__ import annotations

from shipsync.domain.model.carrier import CarrierTrackResult, RawScanEvent, StatusHeader
from shipsync.domain.model.enums import (
    LOCAL_IN_PROGRESS_STATUSES,
    RETURN_STATUSES,
    TERMINAL_STATUSES,
    IncomeType,
    ShipmentStatus,
)
from shipsync.domain.model.policy import DEFAULT_POLICY, SubsidiaryPolicy
from shipsync.domain.model.shipment import IncomeRecord, ShipmentProjection, StatusEvent

__all__ = [  # noqa: RUF022
    # enums
    "IncomeType",
    "ShipmentStatus",
    "LOCAL_IN_PROGRESS_STATUSES",
    "RETURN_STATUSES",
    "TERMINAL_STATUSES",
    # ledger entities
    "IncomeRecord",
    "ShipmentProjection",
    "StatusEvent",
    # policy
    "DEFAULT_POLICY",
    "SubsidiaryPolicy",
    # carrier payloads
    "CarrierTrackResult",
    "RawScanEvent",
    "StatusHeader",
]
