"""Translate raw carrier scan events into canonical ledger entries.

Each raw event is reduced to ``(status, recorded code, timestamp, note)``. The recorded
code is the most specific non-blank code on the event (exception code, then derived
status code, then event type). Together with the millisecond-truncated UTC timestamp
it forms the dedup signature used to decide whether an event is already in the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from shipsync.domain.model import ShipmentStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from shipsync.domain.model import RawScanEvent, StatusEvent, StatusHeader

type EventSignature = tuple[datetime, str]

EXCEPTION_CODE_STATUS: Final[Mapping[str, ShipmentStatus]] = {
    "07": ShipmentStatus.REJECTED,
    "08": ShipmentStatus.CUSTOMER_UNAVAILABLE,
    "71": ShipmentStatus.CUSTOMER_UNAVAILABLE,
    "72": ShipmentStatus.CUSTOMER_UNAVAILABLE,
    "67": ShipmentStatus.IN_WAREHOUSE,
    "03": ShipmentStatus.WRONG_ADDRESS,
    "A12": ShipmentStatus.WRONG_ADDRESS,
    "A13": ShipmentStatus.WRONG_ADDRESS,
    "11": ShipmentStatus.PENDING,
    "17": ShipmentStatus.PENDING,
    "20": ShipmentStatus.PENDING,
    "41": ShipmentStatus.PENDING,
    "79": ShipmentStatus.PENDING,
    "79A": ShipmentStatus.PENDING,
    "84": ShipmentStatus.PENDING,
    "DF": ShipmentStatus.PENDING,
    "14": ShipmentStatus.CARRIER_STATION,
    "15": ShipmentStatus.CARRIER_STATION,
    "64": ShipmentStatus.CARRIER_STATION,
    "086C": ShipmentStatus.CARRIER_STATION,
    "16": ShipmentStatus.ARRIVED_LATE,
    "08D": ShipmentStatus.NOT_DELIVERED,
}

EVENT_CODE_STATUS: Final[Mapping[str, ShipmentStatus]] = {
    "DL": ShipmentStatus.DELIVERED,
    "PU": ShipmentStatus.PICKED_UP,
    "OC": ShipmentStatus.PICKED_UP,
    "IN": ShipmentStatus.PENDING,
    "IT": ShipmentStatus.IN_TRANSIT,
    "AR": ShipmentStatus.IN_TRANSIT,
    "DP": ShipmentStatus.IN_TRANSIT,
    "CP": ShipmentStatus.IN_TRANSIT,
    "CC": ShipmentStatus.IN_TRANSIT,
    "OW": ShipmentStatus.IN_TRANSIT,
    "FD": ShipmentStatus.IN_TRANSIT,
    "AF": ShipmentStatus.CARRIER_STATION,
    "OD": ShipmentStatus.EN_ROUTE,
    "DY": ShipmentStatus.ARRIVED_LATE,
    "RR": ShipmentStatus.RESCHEDULE_REQUESTED,
    "HL": ShipmentStatus.AT_PICKUP_LOCATION,
    "DE": ShipmentStatus.NOT_DELIVERED,
    "DU": ShipmentStatus.NOT_DELIVERED,
    "SE": ShipmentStatus.NOT_DELIVERED,
    "TA": ShipmentStatus.NOT_DELIVERED,
    "TD": ShipmentStatus.NOT_DELIVERED,
    "RF": ShipmentStatus.REJECTED,
    "RS": ShipmentStatus.RETURNED_TO_CARRIER,
    "AB": ShipmentStatus.ABANDONED_RETURN,
}

DELIVERED_CODE: Final[str] = "DL"


@dataclass(frozen=True, slots=True, kw_only=True)
class NormalizedEvent:
    """Canonical form of one carrier scan, ready to be appended to the ledger."""

    status: ShipmentStatus
    code: str
    timestamp: datetime
    note: str | None
    raw: RawScanEvent

    @property
    def signature(self) -> EventSignature:
        return event_signature(self.timestamp, self.code)

    @property
    def coded_delivered(self) -> bool:
        return DELIVERED_CODE in self.raw.codes()


def clean_code(code: str | None) -> str:
    return code.strip().upper() if code else ""


def truncate_to_millisecond(timestamp: datetime) -> datetime:
    """Return ``timestamp`` in UTC with sub-millisecond precision dropped."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    utc = timestamp.astimezone(UTC)
    return utc.replace(microsecond=(utc.microsecond // 1000) * 1000)


def event_signature(timestamp: datetime, code: str | None) -> EventSignature:
    return (truncate_to_millisecond(timestamp), clean_code(code))


def _map_codes(
    exception_code: str,
    derived_code: str,
    event_code: str,
) -> ShipmentStatus | None:
    if exception_code and exception_code in EXCEPTION_CODE_STATUS:
        return EXCEPTION_CODE_STATUS[exception_code]
    for code in (derived_code, event_code):
        if code and code in EVENT_CODE_STATUS:
            return EVENT_CODE_STATUS[code]
    return None


def normalize_event(raw: RawScanEvent) -> NormalizedEvent:
    exception_code = clean_code(raw.exception_code)
    derived_code = clean_code(raw.derived_status_code)
    event_code = clean_code(raw.event_type)
    recorded = exception_code or derived_code or event_code
    description = raw.exception_description or raw.event_description or raw.derived_status

    status = _map_codes(exception_code, derived_code, event_code)
    if status is None:
        status = ShipmentStatus.UNKNOWN
        note = (
            f"unmapped: exception={exception_code or '-'} derived={derived_code or '-'} "
            f"event={event_code or '-'}"
        )
        if description:
            note = f"{note} | {description}"
    else:
        note = description

    return NormalizedEvent(
        status=status,
        code=recorded,
        timestamp=truncate_to_millisecond(raw.timestamp),
        note=note,
        raw=raw,
    )


def normalize_header(header: StatusHeader) -> ShipmentStatus:
    """Map the carrier's "latest status" header onto a canonical status."""

    status = _map_codes(
        clean_code(header.exception_code),
        clean_code(header.derived_code),
        clean_code(header.code),
    )
    return status if status is not None else ShipmentStatus.UNKNOWN


def header_coded_delivered(header: StatusHeader) -> bool:
    return DELIVERED_CODE in (clean_code(header.code), clean_code(header.derived_code))


def persisted_signatures(events: Iterable[StatusEvent]) -> set[EventSignature]:
    return {event_signature(event.timestamp, event.exception_code) for event in events}


def new_events(
    raw_events: Iterable[RawScanEvent],
    persisted: Iterable[StatusEvent],
) -> list[NormalizedEvent]:
    """Return the events not yet in the ledger, oldest first.

    Duplicates inside ``raw_events`` collapse onto their first occurrence.
    """

    seen = persisted_signatures(persisted)
    fresh: list[NormalizedEvent] = []
    for normalized in sorted(
        (normalize_event(raw) for raw in raw_events),
        key=lambda event: event.timestamp,
    ):
        signature = normalized.signature
        if signature in seen:
            continue
        seen.add(signature)
        fresh.append(normalized)
    return fresh
