"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.adapters.fedex import FedExClient
from shipsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyLedgerUnitOfWork,
    is_started,
    startup,
)
from shipsync.config import get_fedex_config, get_reconcile_config
from shipsync.domain.model import ShipmentProjection, ShipmentStatus
from shipsync.domain.reconciliation import (
    LedgerWriter,
    ReconciliationEngine,
    RevenueRecognizer,
    StatusWeights,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from shipsync.config import ReconcileConfig
    from shipsync.domain.ports import CarrierClient, LedgerUnitOfWork
    from shipsync.domain.reconciliation import ReconciliationReport

UnitOfWorkFactory = Callable[[], "LedgerUnitOfWork"]

log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_reconciliation_engine(
    carrier: CarrierClient,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    max_concurrency: int | None = None,
) -> ReconciliationEngine:
    """Wire the reconciliation engine from configuration."""

    effective_config = config or get_reconcile_config()
    writer = LedgerWriter(
        weights=StatusWeights.with_overrides(effective_config.status_weight_overrides),
        recognizer=RevenueRecognizer(billing_timezone=effective_config.billing_timezone),
    )
    return ReconciliationEngine(
        carrier,
        unit_of_work_factory or SqlAlchemyLedgerUnitOfWork,
        writer=writer,
        max_concurrency=max_concurrency or effective_config.max_concurrency,
        backoff=effective_config.carrier_backoff,
    )


async def _reconcile_with_fedex(
    tracking_numbers: list[str],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None,
    config: ReconcileConfig | None,
    max_concurrency: int | None,
    persist: bool,
) -> ReconciliationReport:
    async with FedExClient(config=get_fedex_config()) as carrier:
        engine = build_reconciliation_engine(
            carrier,
            unit_of_work_factory=unit_of_work_factory,
            config=config,
            max_concurrency=max_concurrency,
        )
        return await engine.reconcile_async(tracking_numbers, persist=persist)


def reconcile_shipments(
    tracking_numbers: Iterable[str],
    *,
    carrier: CarrierClient | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    max_concurrency: int | None = None,
    persist: bool = True,
) -> ReconciliationReport:
    """Reconcile the given tracking numbers against the carrier."""

    if unit_of_work_factory is None:
        _ensure_started()
    requested = list(tracking_numbers)
    log.info(
        "Starting reconciliation: tracking_numbers=%s, persist=%s, concurrency=%s",
        len(requested),
        persist,
        max_concurrency,
    )

    if carrier is None:
        report = asyncio.run(
            _reconcile_with_fedex(
                requested,
                unit_of_work_factory=unit_of_work_factory,
                config=config,
                max_concurrency=max_concurrency,
                persist=persist,
            )
        )
    else:
        engine = build_reconciliation_engine(
            carrier,
            unit_of_work_factory=unit_of_work_factory,
            config=config,
            max_concurrency=max_concurrency,
        )
        report = engine.reconcile(requested, persist=persist)

    summary = report.summary()
    log.info(
        f"Finished reconciliation: updated={summary['updated']}, errors={summary['errors']}, "
        f"skipped={summary['skipped']}, incomes={summary['incomes']}"
    )
    return report


def pending_tracking_numbers(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[str]:
    """Tracking numbers with at least one shipment not yet in a terminal status."""

    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyLedgerUnitOfWork)() as uow:
        return uow.repositories.shipments.pending_tracking_numbers()


def reconcile_pending_shipments(
    *,
    carrier: CarrierClient | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    max_concurrency: int | None = None,
    persist: bool = True,
) -> ReconciliationReport:
    """Reconcile every tracking number that still has a non-terminal shipment."""

    tracking_numbers = pending_tracking_numbers(unit_of_work_factory=unit_of_work_factory)
    log.info("Found %s pending tracking number(s)", len(tracking_numbers))
    return reconcile_shipments(
        tracking_numbers,
        carrier=carrier,
        unit_of_work_factory=unit_of_work_factory,
        config=config,
        max_concurrency=max_concurrency,
        persist=persist,
    )


def register_shipment(
    tracking_number: str,
    *,
    subsidiary_id: UUID | None = None,
    status: ShipmentStatus = ShipmentStatus.PENDING,
    created_at: datetime | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ShipmentProjection:
    """Create a shipment projection so the carrier can be reconciled against it."""

    cleaned = tracking_number.strip()
    if not cleaned:
        raise ValueError("Tracking number must not be blank")
    if unit_of_work_factory is None:
        _ensure_started()

    shipment = ShipmentProjection(
        tracking_number=cleaned,
        status=status,
        subsidiary_id=subsidiary_id,
        created_at=created_at or datetime.now(UTC),
    )
    with (unit_of_work_factory or SqlAlchemyLedgerUnitOfWork)() as uow:
        uow.repositories.shipments.add(shipment)
        uow.commit()
    log.info("Registered shipment %s for %s", shipment.id, cleaned)
    return shipment
