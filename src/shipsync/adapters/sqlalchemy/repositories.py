"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import exists, select

from shipsync.adapters.sqlalchemy.mappings import (
    income_table,
    shipment_table,
    status_event_table,
    subsidiary_policy_table,
)
from shipsync.domain.model import (
    DEFAULT_POLICY,
    TERMINAL_STATUSES,
    IncomeRecord,
    ShipmentProjection,
    StatusEvent,
    SubsidiaryPolicy,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from shipsync.domain.ports import (
        IncomeRepository,
        PolicyStore,
        ShipmentRepository,
        StatusEventRepository,
    )


class SqlAlchemyShipmentRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ShipmentProjection) -> None:
        self.session.add(entity)

    def get(self, shipment_id: uuid.UUID) -> ShipmentProjection | None:
        return self.session.get(ShipmentProjection, shipment_id)

    def list_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]:
        stmt = (
            select(ShipmentProjection)
            .where(shipment_table.c.tracking_number == tracking_number)
            .order_by(shipment_table.c.created_at, shipment_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def lock_by_tracking_number(self, tracking_number: str) -> list[ShipmentProjection]:
        stmt = (
            select(ShipmentProjection)
            .where(shipment_table.c.tracking_number == tracking_number)
            .order_by(shipment_table.c.created_at, shipment_table.c.id)
            .with_for_update()
        )
        return list(self.session.execute(stmt).scalars())

    def pending_tracking_numbers(self) -> list[str]:
        stmt = (
            select(shipment_table.c.tracking_number)
            .where(shipment_table.c.status.not_in(sorted(TERMINAL_STATUSES)))
            .distinct()
            .order_by(shipment_table.c.tracking_number)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyStatusEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: StatusEvent) -> None:
        self.session.add(entity)

    def list_for_shipment(self, shipment_id: uuid.UUID) -> list[StatusEvent]:
        stmt = (
            select(StatusEvent)
            .where(status_event_table.c.shipment_id == shipment_id)
            .order_by(status_event_table.c.timestamp, status_event_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyIncomeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: IncomeRecord) -> None:
        self.session.add(entity)

    def exists_for_week(self, tracking_number: str, iso_week_key: str) -> bool:
        stmt = select(
            exists().where(
                income_table.c.tracking_number == tracking_number,
                income_table.c.iso_week_key == iso_week_key,
            )
        )
        return bool(self.session.execute(stmt).scalar())

    def list_for_tracking_number(self, tracking_number: str) -> list[IncomeRecord]:
        stmt = (
            select(IncomeRecord)
            .where(income_table.c.tracking_number == tracking_number)
            .order_by(income_table.c.date)
        )
        return list(self.session.execute(stmt).scalars())


def _policy_from_row(row: Row[tuple[object, ...]]) -> SubsidiaryPolicy:
    values = row._mapping  # noqa: SLF001
    return SubsidiaryPolicy(
        subsidiary_id=values["subsidiary_id"],
        cost_per_package=Decimal(values["cost_per_package"]),
        allowed_exception_codes=values["allowed_exception_codes"],
        repeat_attempt_codes=values["repeat_attempt_codes"],
        min_repeat_attempts=values["min_repeat_attempts"],
        rejection_codes=values["rejection_codes"],
        bill_rejections=values["bill_rejections"],
        billable_exception_codes=values["billable_exception_codes"],
        track_external_delivery=values["track_external_delivery"],
        external_handoff_codes=values["external_handoff_codes"],
    )


class SqlAlchemyPolicyStore:
    """Read subsidiary policies, falling back to ``DEFAULT_POLICY``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_policy(self, subsidiary_id: uuid.UUID | None) -> SubsidiaryPolicy:
        if subsidiary_id is None:
            return DEFAULT_POLICY
        stmt = select(subsidiary_policy_table).where(
            subsidiary_policy_table.c.subsidiary_id == subsidiary_id
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return DEFAULT_POLICY
        return _policy_from_row(row)

    def save_policy(self, policy: SubsidiaryPolicy) -> None:
        """Insert or replace the stored policy for ``policy.subsidiary_id``."""

        if policy.subsidiary_id is None:
            raise ValueError("Only subsidiary-specific policies can be stored")
        values = {
            "cost_per_package": policy.cost_per_package,
            "allowed_exception_codes": policy.allowed_exception_codes,
            "repeat_attempt_codes": policy.repeat_attempt_codes,
            "min_repeat_attempts": policy.min_repeat_attempts,
            "rejection_codes": policy.rejection_codes,
            "bill_rejections": policy.bill_rejections,
            "billable_exception_codes": policy.billable_exception_codes,
            "track_external_delivery": policy.track_external_delivery,
            "external_handoff_codes": policy.external_handoff_codes,
        }
        existing = self.session.execute(
            select(subsidiary_policy_table.c.subsidiary_id).where(
                subsidiary_policy_table.c.subsidiary_id == policy.subsidiary_id
            )
        ).first()
        if existing is None:
            self.session.execute(
                subsidiary_policy_table.insert().values(
                    subsidiary_id=policy.subsidiary_id, **values
                )
            )
        else:
            self.session.execute(
                subsidiary_policy_table.update()
                .where(subsidiary_policy_table.c.subsidiary_id == policy.subsidiary_id)
                .values(**values)
            )


if TYPE_CHECKING:
    _shipments_check: type[ShipmentRepository] = SqlAlchemyShipmentRepository
    _events_check: type[StatusEventRepository] = SqlAlchemyStatusEventRepository
    _incomes_check: type[IncomeRepository] = SqlAlchemyIncomeRepository
    _policies_check: type[PolicyStore] = SqlAlchemyPolicyStore
