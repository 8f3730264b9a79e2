"""Transactional writer for one tracking number's ledger.

All carrier I/O has already happened when ``LedgerWriter.apply`` runs; inside the
transaction only local, deterministic work is done so the row locks are short-lived.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.domain.model import ShipmentStatus, StatusEvent

from .errors import ShipmentNotFoundError
from .guard import guard_transition
from .normalize import new_events
from .report import (
    PendingPickup,
    RecognizedIncome,
    RejectedTransition,
    StatusUpdate,
    UnusualCode,
    UnusualReason,
)
from .resolve import StatusWeights, resolve_target
from .revenue import RevenueRecognizer

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from shipsync.domain.model import (
        CarrierTrackResult,
        IncomeRecord,
        ShipmentProjection,
        SubsidiaryPolicy,
    )
    from shipsync.domain.ports import LedgerRepositories, LedgerUnitOfWork

    from .generation import GenerationSelection
    from .guard import GuardDecision
    from .normalize import NormalizedEvent
    from .resolve import Resolution

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class ShipmentOutcome:
    """What one pass did (or, on a dry run, would do) to one shipment."""

    shipment_id: UUID
    resolution: Resolution
    decision: GuardDecision
    new_events: int = 0
    update: StatusUpdate | None = None
    rejected: RejectedTransition | None = None
    pending_pickup: PendingPickup | None = None
    unusual_codes: list[UnusualCode] = field(default_factory=list[UnusualCode])
    incomes: list[RecognizedIncome] = field(default_factory=list[RecognizedIncome])


@dataclass(slots=True, kw_only=True)
class LedgerOutcome:
    tracking_number: str
    committed: bool
    shipments: list[ShipmentOutcome] = field(default_factory=list[ShipmentOutcome])


def _unusual_codes(
    shipment: ShipmentProjection,
    events: Sequence[NormalizedEvent],
    policy: SubsidiaryPolicy,
) -> list[UnusualCode]:
    unusual: list[UnusualCode] = []
    for event in events:
        if event.status is ShipmentStatus.UNKNOWN:
            reason = UnusualReason.UNMAPPED
        elif event.raw.exception_code and policy.is_unusual(event.code):
            reason = UnusualReason.NOT_ALLOWED
        else:
            continue
        unusual.append(
            UnusualCode(
                tracking_number=shipment.tracking_number,
                shipment_id=shipment.id,
                code=event.code,
                reason=reason,
                timestamp=event.timestamp,
                note=event.note,
            )
        )
    return unusual


def _recognized(record: IncomeRecord) -> RecognizedIncome:
    return RecognizedIncome(
        tracking_number=record.tracking_number,
        shipment_id=record.shipment_id,
        income_type=record.income_type,
        cost=record.cost,
        date=record.date,
        iso_week_key=record.iso_week_key,
        non_delivery_code=record.non_delivery_code,
    )


class LedgerWriter:
    """Append carrier events and move shipment projections, one tracking number at a time."""

    def __init__(
        self,
        *,
        weights: StatusWeights | None = None,
        recognizer: RevenueRecognizer | None = None,
    ) -> None:
        self.weights = weights or StatusWeights()
        self.recognizer = recognizer or RevenueRecognizer()

    def apply(
        self,
        uow: LedgerUnitOfWork,
        tracking_number: str,
        selection: GenerationSelection,
        *,
        persist: bool = True,
    ) -> LedgerOutcome:
        """Reconcile every sibling shipment of ``tracking_number`` in one transaction.

        Commits when ``persist`` is true; otherwise the transaction is rolled back after
        the outcome has been computed. Any exception rolls back this tracking number only.
        """

        with uow:
            repositories = uow.repositories
            shipments = repositories.shipments.lock_by_tracking_number(tracking_number)
            if not shipments:
                raise ShipmentNotFoundError(tracking_number)

            outcome = LedgerOutcome(tracking_number=tracking_number, committed=persist)
            paid_weeks: set[str] = set()
            for shipment in shipments:
                outcome.shipments.append(
                    self._apply_shipment(
                        repositories, shipment, selection.winner, paid_weeks=paid_weeks
                    )
                )

            if persist:
                uow.commit()
            else:
                uow.rollback()
                log.info("Dry run for %s rolled back", tracking_number)
        return outcome

    def _apply_shipment(
        self,
        repositories: LedgerRepositories,
        shipment: ShipmentProjection,
        result: CarrierTrackResult,
        *,
        paid_weeks: set[str],
    ) -> ShipmentOutcome:
        policy = repositories.policies.get_policy(shipment.subsidiary_id)
        persisted = repositories.status_events.list_for_shipment(shipment.id)
        fresh = new_events(result.scan_events, persisted)

        resolution = resolve_target(
            result,
            fresh,
            created_at=shipment.created_at,
            policy=policy,
            weights=self.weights,
        )
        previous = shipment.status
        decision = guard_transition(
            previous,
            resolution.target,
            self.weights,
            tracking_number=shipment.tracking_number,
        )

        for event in fresh:
            repositories.status_events.add(
                StatusEvent(
                    shipment_id=shipment.id,
                    status=event.status,
                    exception_code=event.code,
                    timestamp=event.timestamp,
                    note=event.note,
                )
            )

        outcome = ShipmentOutcome(
            shipment_id=shipment.id,
            resolution=resolution,
            decision=decision,
            new_events=len(fresh),
            unusual_codes=_unusual_codes(shipment, fresh, policy),
        )

        if decision.approved:
            shipment.status = resolution.target
            if result.generation_id:
                shipment.carrier_generation_id = result.generation_id
            if result.header.received_by_name:
                shipment.received_by_name = result.header.received_by_name
            outcome.update = StatusUpdate(
                tracking_number=shipment.tracking_number,
                shipment_id=shipment.id,
                subsidiary_id=shipment.subsidiary_id,
                from_status=previous,
                to_status=resolution.target,
                event_date=fresh[-1].timestamp if fresh else None,
                new_events=len(fresh),
            )
            if resolution.target is ShipmentStatus.AT_PICKUP_LOCATION:
                outcome.pending_pickup = PendingPickup(
                    tracking_number=shipment.tracking_number,
                    shipment_id=shipment.id,
                    subsidiary_id=shipment.subsidiary_id,
                )
            log.info(
                "Shipment %s (%s): %s -> %s",
                shipment.tracking_number,
                shipment.id,
                previous,
                resolution.target,
            )
        elif decision.is_violation:
            outcome.rejected = RejectedTransition(
                tracking_number=shipment.tracking_number,
                shipment_id=shipment.id,
                current=previous,
                target=resolution.target,
                rule=decision.rule,
                reason=decision.reason,
            )

        records = self.recognizer.recognize(
            shipment=shipment,
            events=fresh,
            persisted=persisted,
            target=resolution.target,
            header=result.header,
            policy=policy,
            incomes=repositories.incomes,
            paid_weeks=paid_weeks,
        )
        outcome.incomes = [_recognized(record) for record in records]
        return outcome
