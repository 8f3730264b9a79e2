"""Exception taxonomy for carrier reconciliation."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for failures confined to one tracking number."""


class CarrierError(ReconciliationError):
    """The carrier could not provide usable tracking data."""


class CarrierUnavailableError(CarrierError):
    """Transient carrier failure (network, authentication, 5xx). Safe to retry."""


class CarrierPayloadError(CarrierError):
    """The carrier answered with a payload that does not match its documented shape."""


class ShipmentNotFoundError(ReconciliationError):
    """No shipment projection exists for the requested tracking number."""

    def __init__(self, tracking_number: str) -> None:
        super().__init__(f"No shipment registered for tracking number {tracking_number}")
        self.tracking_number = tracking_number
