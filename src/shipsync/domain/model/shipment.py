"""Persisted shipment ledger entities."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .enums import ShipmentStatus

if TYPE_CHECKING:
    from decimal import Decimal

    from .enums import IncomeType


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class ShipmentProjection:
    """Current, mutable snapshot of one physical shipment.

    Several projections may share a tracking number (split consolidations); they are
    always processed together, ordered by ``created_at``.
    """

    tracking_number: str
    status: ShipmentStatus = ShipmentStatus.PENDING
    carrier_generation_id: str | None = None
    received_by_name: str | None = None
    subsidiary_id: uuid.UUID | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(eq=False, kw_only=True)
class StatusEvent:
    """Append-only ledger entry. Read back ordered by ``timestamp``, never mutated."""

    shipment_id: uuid.UUID
    status: ShipmentStatus
    timestamp: datetime
    exception_code: str = ""
    note: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(eq=False, kw_only=True)
class IncomeRecord:
    """Billing fact. At most one exists per ``(tracking_number, iso_week_key)``."""

    tracking_number: str
    income_type: IncomeType
    cost: Decimal
    date: datetime
    iso_week_key: str
    shipment_id: uuid.UUID | None = None
    subsidiary_id: uuid.UUID | None = None
    non_delivery_code: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
