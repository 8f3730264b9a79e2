"""Ports for the shipment ledger store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shipsync.domain.model import (
    IncomeRecord,
    ShipmentProjection,
    StatusEvent,
    SubsidiaryPolicy,
)

if TYPE_CHECKING:
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class ShipmentRepository(Repository[ShipmentProjection], Protocol):
    """Persistence contract for shipment projections."""

    def get(self, shipment_id: UUID) -> ShipmentProjection | None: ...

    def list_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]: ...

    def lock_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]:
        """Return every sibling row for ``tracking_number`` under a write lock.

        Rows are ordered by ``created_at``; the lock is held until the surrounding unit of
        work ends.
        """
        ...

    def pending_tracking_numbers(self) -> list[str]:
        """Distinct tracking numbers with at least one non-terminal shipment."""
        ...


@runtime_checkable
class StatusEventRepository(Repository[StatusEvent], Protocol):
    """Persistence contract for the append-only status ledger."""

    def list_for_shipment(self, shipment_id: UUID) -> list[StatusEvent]: ...


@runtime_checkable
class IncomeRepository(Repository[IncomeRecord], Protocol):
    """Persistence contract for income records."""

    def exists_for_week(self, tracking_number: str, iso_week_key: str) -> bool: ...

    def list_for_tracking_number(self, tracking_number: str) -> list[IncomeRecord]: ...


@runtime_checkable
class PolicyStore(Protocol):
    """Read-only lookup of subsidiary rules, falling back to ``DEFAULT_POLICY``."""

    def get_policy(self, subsidiary_id: UUID | None) -> SubsidiaryPolicy: ...
