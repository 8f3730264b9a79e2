"""Ephemeral carrier tracking payloads, already translated out of the wire format."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusHeader:
    """The carrier's mutable "latest status" summary for one generation."""

    code: str | None = None
    derived_code: str | None = None
    status_by_locale: str | None = None
    description: str | None = None
    exception_code: str | None = None
    exception_description: str | None = None
    received_by_name: str | None = None
    actual_delivery_at: datetime | None = None

    def codes(self) -> tuple[str, ...]:
        return tuple(
            code.strip().upper()
            for code in (self.exception_code, self.derived_code, self.code)
            if code and code.strip()
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class RawScanEvent:
    timestamp: datetime
    event_type: str | None = None
    event_description: str | None = None
    exception_code: str | None = None
    exception_description: str | None = None
    derived_status_code: str | None = None
    derived_status: str | None = None
    location: str | None = None

    def codes(self) -> tuple[str, ...]:
        """Non-blank codes, most specific first (exception, derived, event type)."""

        return tuple(
            code.strip().upper()
            for code in (self.exception_code, self.derived_status_code, self.event_type)
            if code and code.strip()
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class CarrierTrackResult:
    """One carrier-reported life-cycle ("generation") of a tracking number."""

    tracking_number: str
    generation_id: str | None = None
    header: StatusHeader = field(default_factory=StatusHeader)
    scan_events: tuple[RawScanEvent, ...] = ()

    def latest_event_at(self) -> datetime | None:
        if not self.scan_events:
            return None
        return max(event.timestamp for event in self.scan_events)
