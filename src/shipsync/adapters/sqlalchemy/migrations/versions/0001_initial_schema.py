"""Initial shipment ledger schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

SHIPMENT_STATUSES = (
    "PICKED_UP",
    "PENDING",
    "IN_WAREHOUSE",
    "EN_ROUTE",
    "IN_TRANSIT",
    "CARRIER_STATION",
    "ARRIVED_LATE",
    "RESCHEDULE_REQUESTED",
    "HANDED_TO_CARRIER",
    "AT_PICKUP_LOCATION",
    "NOT_DELIVERED",
    "REJECTED",
    "WRONG_ADDRESS",
    "CUSTOMER_UNAVAILABLE",
    "RETURNED_TO_CARRIER",
    "ABANDONED_RETURN",
    "DELIVERED",
    "DELIVERED_BY_CARRIER",
    "UNKNOWN",
)
INCOME_TYPES = ("DELIVERED", "NOT_DELIVERED")


def upgrade() -> None:
    op.create_table(
        "shipment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tracking_number", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*SHIPMENT_STATUSES, name="shipmentstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("carrier_generation_id", sa.String(length=128), nullable=True),
        sa.Column("received_by_name", sa.String(length=255), nullable=True),
        sa.Column("subsidiary_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_shipment")),
    )
    with op.batch_alter_table("shipment", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_shipment_tracking_number"), ["tracking_number"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_shipment_subsidiary_id"), ["subsidiary_id"], unique=False
        )

    op.create_table(
        "shipment_status",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("shipment_id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*SHIPMENT_STATUSES, name="shipmentstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("exception_code", sa.String(length=16), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["shipment_id"],
            ["shipment.id"],
            name=op.f("fk_shipment_status_shipment_id_shipment"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_shipment_status")),
    )
    with op.batch_alter_table("shipment_status", schema=None) as batch_op:
        batch_op.create_index(
            "ix_shipment_status_shipment_timestamp",
            ["shipment_id", "timestamp"],
            unique=False,
        )

    op.create_table(
        "income",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tracking_number", sa.String(length=64), nullable=False),
        sa.Column(
            "income_type",
            sa.Enum(*INCOME_TYPES, name="incometype", native_enum=False),
            nullable=False,
        ),
        sa.Column("cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("iso_week_key", sa.String(length=10), nullable=False),
        sa.Column("shipment_id", sa.Uuid(), nullable=True),
        sa.Column("subsidiary_id", sa.Uuid(), nullable=True),
        sa.Column("non_delivery_code", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["shipment_id"],
            ["shipment.id"],
            name=op.f("fk_income_shipment_id_shipment"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_income")),
        sa.UniqueConstraint("tracking_number", "iso_week_key", name="uq_income_tracking_week"),
    )

    op.create_table(
        "subsidiary_policy",
        sa.Column("subsidiary_id", sa.Uuid(), nullable=False),
        sa.Column("cost_per_package", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("allowed_exception_codes", sa.String(), nullable=False),
        sa.Column("repeat_attempt_codes", sa.String(), nullable=False),
        sa.Column("min_repeat_attempts", sa.Integer(), nullable=False),
        sa.Column("rejection_codes", sa.String(), nullable=False),
        sa.Column("bill_rejections", sa.Boolean(), nullable=False),
        sa.Column("billable_exception_codes", sa.String(), nullable=False),
        sa.Column("track_external_delivery", sa.Boolean(), nullable=False),
        sa.Column("external_handoff_codes", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("subsidiary_id", name=op.f("pk_subsidiary_policy")),
    )


def downgrade() -> None:
    op.drop_table("subsidiary_policy")
    op.drop_table("income")
    with op.batch_alter_table("shipment_status", schema=None) as batch_op:
        batch_op.drop_index("ix_shipment_status_shipment_timestamp")
    op.drop_table("shipment_status")
    with op.batch_alter_table("shipment", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_shipment_subsidiary_id"))
        batch_op.drop_index(batch_op.f("ix_shipment_tracking_number"))
    op.drop_table("shipment")
