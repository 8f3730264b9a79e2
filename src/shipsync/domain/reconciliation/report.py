"""Per-call reconciliation report.

A fresh ``ReconciliationReport`` is created for every ``reconcile`` call and filled in
as tracking numbers complete; nothing is accumulated at module level.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, StrEnum
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shipsync.domain.model import IncomeType, ShipmentStatus

    from .guard import GuardRule
    from .ledger import LedgerOutcome


class ErrorKind(StrEnum):
    CARRIER_UNAVAILABLE = "carrier_unavailable"
    INVALID_PAYLOAD = "invalid_payload"
    SHIPMENT_NOT_FOUND = "shipment_not_found"
    TRANSACTION_FAILURE = "transaction_failure"


class UnusualReason(StrEnum):
    NOT_ALLOWED = "not_allowed"
    UNMAPPED = "unmapped"


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusUpdate:
    tracking_number: str
    shipment_id: UUID
    subsidiary_id: UUID | None
    from_status: ShipmentStatus
    to_status: ShipmentStatus
    event_date: datetime | None
    new_events: int


@dataclass(frozen=True, slots=True, kw_only=True)
class ReportedError:
    tracking_number: str
    kind: ErrorKind
    message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class UnusualCode:
    tracking_number: str
    shipment_id: UUID
    code: str
    reason: UnusualReason
    timestamp: datetime
    note: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class PendingPickup:
    tracking_number: str
    shipment_id: UUID
    subsidiary_id: UUID | None


@dataclass(frozen=True, slots=True, kw_only=True)
class RejectedTransition:
    tracking_number: str
    shipment_id: UUID
    current: ShipmentStatus
    target: ShipmentStatus
    rule: GuardRule
    reason: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RecognizedIncome:
    tracking_number: str
    shipment_id: UUID | None
    income_type: IncomeType
    cost: Decimal
    date: datetime
    iso_week_key: str
    non_delivery_code: str | None = None


def _jsonable(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, dict):
        mapping = cast("dict[str, Any]", value)
        return {key: _jsonable(item) for key, item in mapping.items()}
    if isinstance(value, (list, tuple)):
        items = cast("list[Any]", value)
        return [_jsonable(item) for item in items]
    return value


@dataclass(slots=True)
class ReconciliationReport:
    """Outcome of one reconciliation batch."""

    persist: bool = True
    updated: list[StatusUpdate] = field(default_factory=list[StatusUpdate])
    errors: list[ReportedError] = field(default_factory=list[ReportedError])
    unusual_codes: list[UnusualCode] = field(default_factory=list[UnusualCode])
    pending_pickup: list[PendingPickup] = field(default_factory=list[PendingPickup])
    skipped: list[str] = field(default_factory=list[str])
    rejected: list[RejectedTransition] = field(default_factory=list[RejectedTransition])
    incomes: list[RecognizedIncome] = field(default_factory=list[RecognizedIncome])
    new_events: int = 0

    def record(self, outcome: LedgerOutcome) -> None:
        for shipment in outcome.shipments:
            self.new_events += shipment.new_events
            if shipment.update is not None:
                self.updated.append(shipment.update)
            if shipment.rejected is not None:
                self.rejected.append(shipment.rejected)
            if shipment.pending_pickup is not None:
                self.pending_pickup.append(shipment.pending_pickup)
            self.unusual_codes.extend(shipment.unusual_codes)
            self.incomes.extend(shipment.incomes)

    def record_error(self, tracking_number: str, kind: ErrorKind, message: str) -> None:
        self.errors.append(
            ReportedError(tracking_number=tracking_number, kind=kind, message=message)
        )

    def record_skipped(self, tracking_number: str) -> None:
        self.skipped.append(tracking_number)

    def errors_of(self, kind: ErrorKind) -> list[ReportedError]:
        return [error for error in self.errors if error.kind is kind]

    def summary(self) -> dict[str, int]:
        return {
            "updated": len(self.updated),
            "errors": len(self.errors),
            "unusual_codes": len(self.unusual_codes),
            "pending_pickup": len(self.pending_pickup),
            "skipped": len(self.skipped),
            "rejected": len(self.rejected),
            "incomes": len(self.incomes),
            "new_events": self.new_events,
        }

    def as_dict(self) -> dict[str, Any]:
        """JSON-serialisable view of the report."""

        def rows(items: Iterable[Any]) -> list[Any]:
            return [_jsonable(dataclasses.asdict(item)) for item in items]

        return {
            "persist": self.persist,
            "summary": self.summary(),
            "updated": rows(self.updated),
            "errors": rows(self.errors),
            "unusual_codes": rows(self.unusual_codes),
            "pending_pickup": rows(self.pending_pickup),
            "skipped": list(self.skipped),
            "rejected": rows(self.rejected),
            "incomes": rows(self.incomes),
        }
