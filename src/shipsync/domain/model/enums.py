"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ShipmentStatus(StrEnum):
    PICKED_UP = "picked_up"
    PENDING = "pending"
    IN_WAREHOUSE = "in_warehouse"
    EN_ROUTE = "en_route"
    IN_TRANSIT = "in_transit"
    CARRIER_STATION = "carrier_station"
    ARRIVED_LATE = "arrived_late"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    HANDED_TO_CARRIER = "handed_to_carrier"
    AT_PICKUP_LOCATION = "at_pickup_location"
    NOT_DELIVERED = "not_delivered"
    REJECTED = "rejected"
    WRONG_ADDRESS = "wrong_address"
    CUSTOMER_UNAVAILABLE = "customer_unavailable"
    RETURNED_TO_CARRIER = "returned_to_carrier"
    ABANDONED_RETURN = "abandoned_return"
    DELIVERED = "delivered"
    DELIVERED_BY_CARRIER = "delivered_by_carrier"
    # explicit "unmapped" marker, never silently dropped
    UNKNOWN = "unknown"


class IncomeType(StrEnum):
    DELIVERED = "delivered"
    NOT_DELIVERED = "not_delivered"


TERMINAL_STATUSES: frozenset[ShipmentStatus] = frozenset(
    {ShipmentStatus.DELIVERED, ShipmentStatus.DELIVERED_BY_CARRIER}
)

RETURN_STATUSES: frozenset[ShipmentStatus] = frozenset(
    {ShipmentStatus.RETURNED_TO_CARRIER, ShipmentStatus.ABANDONED_RETURN}
)

LOCAL_IN_PROGRESS_STATUSES: frozenset[ShipmentStatus] = frozenset(
    {ShipmentStatus.EN_ROUTE, ShipmentStatus.IN_WAREHOUSE, ShipmentStatus.PENDING}
)
