"""Translate FedEx Track API payloads into carrier-neutral domain objects."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.domain.model import CarrierTrackResult, RawScanEvent, StatusHeader

if TYPE_CHECKING:
    from .schema import LatestStatusDetail, ScanEvent, TrackingResponse, TrackResult

log = getLogger(__name__)

ACTUAL_DELIVERY = "ACTUAL_DELIVERY"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def translate_scan_event(event: ScanEvent) -> RawScanEvent:
    return RawScanEvent(
        timestamp=_as_utc(event.date),
        event_type=event.event_type,
        event_description=event.event_description,
        exception_code=event.exception_code,
        exception_description=event.exception_description,
        derived_status_code=event.derived_status_code,
        derived_status=event.derived_status,
        location=event.scan_location.label() if event.scan_location else None,
    )


def _actual_delivery_at(result: TrackResult) -> datetime | None:
    for entry in result.date_and_times:
        if entry.type == ACTUAL_DELIVERY and entry.date_time is not None:
            return _as_utc(entry.date_time)
    return None


def translate_header(result: TrackResult) -> StatusHeader:
    detail: LatestStatusDetail | None = result.latest_status_detail
    reason = None
    if detail is not None:
        reason = next((item for item in detail.ancillary_details if item.reason), None)
    return StatusHeader(
        code=detail.code if detail else None,
        derived_code=detail.derived_code if detail else None,
        status_by_locale=detail.status_by_locale if detail else None,
        description=detail.description if detail else None,
        exception_code=reason.reason if reason else None,
        exception_description=reason.reason_description if reason else None,
        received_by_name=(
            result.delivery_details.received_by_name if result.delivery_details else None
        ),
        actual_delivery_at=_actual_delivery_at(result),
    )


def translate_track_result(tracking_number: str, result: TrackResult) -> CarrierTrackResult:
    info = result.tracking_number_info
    return CarrierTrackResult(
        tracking_number=tracking_number,
        generation_id=info.tracking_number_unique_id,
        header=translate_header(result),
        scan_events=tuple(translate_scan_event(event) for event in result.scan_events),
    )


def translate_response(
    response: TrackingResponse,
    tracking_number: str,
) -> list[CarrierTrackResult]:
    """Return every usable generation for ``tracking_number`` in ``response``.

    Track results that only carry an ``error`` (for example "tracking number not found")
    are dropped, so an unknown tracking number translates to an empty list.
    """

    translated: list[CarrierTrackResult] = []
    for complete in response.output.complete_track_results:
        for result in complete.track_results:
            if result.error is not None and result.is_error_only:
                log.info(
                    "FedEx reported %s for %s: %s",
                    result.error.code,
                    tracking_number,
                    result.error.message,
                )
                continue
            translated.append(translate_track_result(tracking_number, result))
    return translated
