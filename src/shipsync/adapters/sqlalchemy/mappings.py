"""SQLAlchemy mapping metadata for the shipment ledger."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)

from shipsync.domain.model import (
    IncomeRecord,
    IncomeType,
    ShipmentProjection,
    ShipmentStatus,
    StatusEvent,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]
MoneyType = Numeric(12, 2, asdecimal=True)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class CodeSetType(TypeDecorator[frozenset[str]]):
    """Stores a set of carrier codes as a sorted JSON array."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: frozenset[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(code.strip().upper() for code in value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> frozenset[str]:
        _ = dialect
        if value is None:
            return frozenset()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return frozenset()
        items = cast(list[Any], loaded)
        return frozenset(item for item in items if isinstance(item, str))


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

shipment_table = Table(
    "shipment",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tracking_number", String(64), nullable=False, index=True),
    Column("status", Enum(ShipmentStatus, native_enum=False), nullable=False),
    Column("carrier_generation_id", String(128), nullable=True),
    Column("received_by_name", String(255), nullable=True),
    Column("subsidiary_id", UUIDColumnType, nullable=True, index=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

status_event_table = Table(
    "shipment_status",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("shipment_id", UUIDColumnType, ForeignKey("shipment.id"), nullable=False),
    Column("status", Enum(ShipmentStatus, native_enum=False), nullable=False),
    Column("exception_code", String(16), nullable=False, default=""),
    Column("timestamp", UTCDateTime(), nullable=False),
    Column("note", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_shipment_status_shipment_timestamp", "shipment_id", "timestamp"),
)

income_table = Table(
    "income",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tracking_number", String(64), nullable=False),
    Column("income_type", Enum(IncomeType, native_enum=False), nullable=False),
    Column("cost", MoneyType, nullable=False),
    Column("date", UTCDateTime(), nullable=False),
    Column("iso_week_key", String(10), nullable=False),
    Column("shipment_id", UUIDColumnType, ForeignKey("shipment.id"), nullable=True),
    Column("subsidiary_id", UUIDColumnType, nullable=True),
    Column("non_delivery_code", String(16), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("tracking_number", "iso_week_key", name="uq_income_tracking_week"),
)

# Policies are read-only to the engine and are loaded into frozen dataclasses by the
# policy store rather than mapped.
subsidiary_policy_table = Table(
    "subsidiary_policy",
    mapper_registry.metadata,
    Column("subsidiary_id", UUIDColumnType, primary_key=True),
    Column("cost_per_package", MoneyType, nullable=False),
    Column("allowed_exception_codes", CodeSetType(), nullable=False),
    Column("repeat_attempt_codes", CodeSetType(), nullable=False),
    Column("min_repeat_attempts", Integer, nullable=False),
    Column("rejection_codes", CodeSetType(), nullable=False),
    Column("bill_rejections", Boolean, nullable=False),
    Column("billable_exception_codes", CodeSetType(), nullable=False),
    Column("track_external_delivery", Boolean, nullable=False),
    Column("external_handoff_codes", CodeSetType(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(ShipmentProjection, shipment_table)
    mapper_registry.map_imperatively(StatusEvent, status_event_table)
    mapper_registry.map_imperatively(IncomeRecord, income_table)

    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
