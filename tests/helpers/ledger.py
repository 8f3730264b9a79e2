"""In-memory fakes for the carrier and ledger ports."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal
from uuid import UUID

from shipsync.domain.model import (
    DEFAULT_POLICY,
    TERMINAL_STATUSES,
    IncomeRecord,
    ShipmentProjection,
    StatusEvent,
    SubsidiaryPolicy,
)
from shipsync.domain.ports import LedgerRepositories

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from shipsync.domain.model import CarrierTrackResult


class FakeCarrierClient:
    """Scripted carrier: optional failures first, then the configured results."""

    def __init__(
        self,
        results: Mapping[str, Sequence[CarrierTrackResult]] | None = None,
        *,
        failures: Mapping[str, Sequence[Exception]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._results = {key: list(value) for key, value in (results or {}).items()}
        self._failures = {key: list(value) for key, value in (failures or {}).items()}
        self._delay = delay
        self.calls: list[tuple[str, str | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def track(
        self,
        tracking_number: str,
        known_generation_id: str | None = None,
    ) -> list[CarrierTrackResult]:
        self.calls.append((tracking_number, known_generation_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
            pending = self._failures.get(tracking_number)
            if pending:
                raise pending.pop(0)
            return list(self._results.get(tracking_number, []))
        finally:
            self.in_flight -= 1

    def calls_for(self, tracking_number: str) -> int:
        return sum(1 for called, _ in self.calls if called == tracking_number)


@dataclass(slots=True)
class InMemoryLedger:
    """Committed state shared by every fake unit of work."""

    shipments: dict[UUID, ShipmentProjection] = field(
        default_factory=dict[UUID, ShipmentProjection]
    )
    status_events: list[StatusEvent] = field(default_factory=list[StatusEvent])
    incomes: list[IncomeRecord] = field(default_factory=list[IncomeRecord])
    policies: dict[UUID, SubsidiaryPolicy] = field(default_factory=dict[UUID, SubsidiaryPolicy])
    broken: set[str] = field(default_factory=set[str])
    commits: int = 0
    rollbacks: int = 0

    def seed(
        self,
        *shipments: ShipmentProjection,
        events: Iterable[StatusEvent] = (),
    ) -> None:
        for shipment in shipments:
            self.shipments[shipment.id] = shipment
        self.status_events.extend(events)

    def events_for(self, shipment: ShipmentProjection) -> list[StatusEvent]:
        return sorted(
            (event for event in self.status_events if event.shipment_id == shipment.id),
            key=lambda event: event.timestamp,
        )

    def incomes_for(self, tracking_number: str) -> list[IncomeRecord]:
        return [income for income in self.incomes if income.tracking_number == tracking_number]


class FakeShipmentRepository:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self._ledger = ledger
        self.loaded: dict[UUID, ShipmentProjection] = {}

    def _load(self, shipment: ShipmentProjection) -> ShipmentProjection:
        if shipment.id not in self.loaded:
            self.loaded[shipment.id] = replace(shipment)
        return self.loaded[shipment.id]

    def add(self, entity: ShipmentProjection) -> None:
        self.loaded[entity.id] = entity

    def get(self, shipment_id: UUID) -> ShipmentProjection | None:
        stored = self._ledger.shipments.get(shipment_id)
        return self._load(stored) if stored is not None else self.loaded.get(shipment_id)

    def list_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]:
        if tracking_number in self._ledger.broken:
            raise RuntimeError(f"database is locked for {tracking_number}")
        matches = [
            shipment
            for shipment in self._ledger.shipments.values()
            if shipment.tracking_number == tracking_number
        ]
        matches.sort(key=lambda shipment: shipment.created_at)
        return [self._load(shipment) for shipment in matches]

    def lock_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]:
        return self.list_by_tracking_number(tracking_number)

    def pending_tracking_numbers(self) -> list[str]:
        return sorted(
            {
                shipment.tracking_number
                for shipment in self._ledger.shipments.values()
                if shipment.status not in TERMINAL_STATUSES
            }
        )


class FakeStatusEventRepository:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self._ledger = ledger
        self.pending: list[StatusEvent] = []

    def add(self, entity: StatusEvent) -> None:
        self.pending.append(entity)

    def list_for_shipment(self, shipment_id: UUID) -> list[StatusEvent]:
        return sorted(
            (
                event
                for event in [*self._ledger.status_events, *self.pending]
                if event.shipment_id == shipment_id
            ),
            key=lambda event: event.timestamp,
        )


class FakeIncomeRepository:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self._ledger = ledger
        self.pending: list[IncomeRecord] = []

    def add(self, entity: IncomeRecord) -> None:
        self.pending.append(entity)

    def exists_for_week(self, tracking_number: str, iso_week_key: str) -> bool:
        return any(
            income.tracking_number == tracking_number and income.iso_week_key == iso_week_key
            for income in [*self._ledger.incomes, *self.pending]
        )

    def list_for_tracking_number(self, tracking_number: str) -> list[IncomeRecord]:
        return [
            income
            for income in [*self._ledger.incomes, *self.pending]
            if income.tracking_number == tracking_number
        ]


class FakePolicyStore:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self._ledger = ledger

    def get_policy(self, subsidiary_id: UUID | None) -> SubsidiaryPolicy:
        if subsidiary_id is None:
            return DEFAULT_POLICY
        return self._ledger.policies.get(subsidiary_id, DEFAULT_POLICY)


class FakeLedgerUnitOfWork:
    """Stages writes until ``commit``; ``rollback`` discards them."""

    def __init__(self, ledger: InMemoryLedger) -> None:
        self._ledger = ledger
        self._shipments = FakeShipmentRepository(ledger)
        self._status_events = FakeStatusEventRepository(ledger)
        self._incomes = FakeIncomeRepository(ledger)
        self.repositories = LedgerRepositories(
            shipments=self._shipments,
            status_events=self._status_events,
            incomes=self._incomes,
            policies=FakePolicyStore(ledger),
        )
        self.committed = False
        self.rollback_called = False

    def __enter__(self) -> FakeLedgerUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: object | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self._ledger.shipments.update(self._shipments.loaded)
        self._ledger.status_events.extend(self._status_events.pending)
        self._ledger.incomes.extend(self._incomes.pending)
        self._ledger.commits += 1
        self._discard()
        self.committed = True

    def rollback(self) -> None:
        self._ledger.rollbacks += 1
        self._discard()
        self.rollback_called = True

    def _discard(self) -> None:
        self._shipments.loaded.clear()
        self._status_events.pending.clear()
        self._incomes.pending.clear()


if TYPE_CHECKING:
    from shipsync.domain.ports import (
        CarrierClient,
        IncomeRepository,
        LedgerUnitOfWork,
        PolicyStore,
        ShipmentRepository,
        StatusEventRepository,
    )

    _carrier_check: CarrierClient = FakeCarrierClient()
    _shipments_check: ShipmentRepository = FakeShipmentRepository(InMemoryLedger())
    _events_check: StatusEventRepository = FakeStatusEventRepository(InMemoryLedger())
    _incomes_check: IncomeRepository = FakeIncomeRepository(InMemoryLedger())
    _policies_check: PolicyStore = FakePolicyStore(InMemoryLedger())
    _uow_check: LedgerUnitOfWork = FakeLedgerUnitOfWork(InMemoryLedger())
