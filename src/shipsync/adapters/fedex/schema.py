"""Pydantic models describing the FedEx Track API payloads.

Only the parts of the response the reconciliation engine reads are modelled; unknown
keys are ignored.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class FedExBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OAuthTokenResponse(FedExBaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    scope: str | None = None


class ApiErrorDetail(FedExBaseModel):
    code: str
    message: str | None = None


class ApiErrorResponse(FedExBaseModel):
    transaction_id: str | None = Field(default=None, alias="transactionId")
    errors: list[ApiErrorDetail] = Field(default_factory=list[ApiErrorDetail])


class Address(FedExBaseModel):
    city: str | None = None
    state_or_province_code: str | None = Field(default=None, alias="stateOrProvinceCode")
    postal_code: str | None = Field(default=None, alias="postalCode")
    country_code: str | None = Field(default=None, alias="countryCode")

    def label(self) -> str | None:
        parts = [
            part
            for part in (self.city, self.state_or_province_code, self.country_code)
            if part
        ]
        return ", ".join(parts) or None


class AncillaryDetail(FedExBaseModel):
    reason: str | None = None
    reason_description: str | None = Field(default=None, alias="reasonDescription")
    action: str | None = None
    action_description: str | None = Field(default=None, alias="actionDescription")

    _normalize_reason = field_validator("reason", mode="before")(_blank_to_none)


class LatestStatusDetail(FedExBaseModel):
    code: str | None = None
    derived_code: str | None = Field(default=None, alias="derivedCode")
    status_by_locale: str | None = Field(default=None, alias="statusByLocale")
    description: str | None = None
    scan_location: Address | None = Field(default=None, alias="scanLocation")
    ancillary_details: list[AncillaryDetail] = Field(
        default_factory=list[AncillaryDetail], alias="ancillaryDetails"
    )

    _normalize_codes = field_validator("code", "derived_code", mode="before")(_blank_to_none)


class ScanEvent(FedExBaseModel):
    date: datetime
    event_type: str | None = Field(default=None, alias="eventType")
    event_description: str | None = Field(default=None, alias="eventDescription")
    exception_code: str | None = Field(default=None, alias="exceptionCode")
    exception_description: str | None = Field(default=None, alias="exceptionDescription")
    derived_status_code: str | None = Field(default=None, alias="derivedStatusCode")
    derived_status: str | None = Field(default=None, alias="derivedStatus")
    scan_location: Address | None = Field(default=None, alias="scanLocation")

    _normalize_codes = field_validator(
        "event_type",
        "exception_code",
        "exception_description",
        "derived_status_code",
        mode="before",
    )(_blank_to_none)


class DateAndTime(FedExBaseModel):
    type: str
    date_time: datetime | None = Field(default=None, alias="dateTime")

    _normalize_date_time = field_validator("date_time", mode="before")(_blank_to_none)


class DeliveryDetails(FedExBaseModel):
    received_by_name: str | None = Field(default=None, alias="receivedByName")
    delivery_attempts: str | None = Field(default=None, alias="deliveryAttempts")

    _normalize_name = field_validator("received_by_name", mode="before")(_blank_to_none)


class TrackingNumberInfo(FedExBaseModel):
    tracking_number: str | None = Field(default=None, alias="trackingNumber")
    tracking_number_unique_id: str | None = Field(default=None, alias="trackingNumberUniqueId")
    carrier_code: str | None = Field(default=None, alias="carrierCode")

    _normalize_unique_id = field_validator("tracking_number_unique_id", mode="before")(
        _blank_to_none
    )


class TrackResultError(FedExBaseModel):
    code: str | None = None
    message: str | None = None


class TrackResult(FedExBaseModel):
    tracking_number_info: TrackingNumberInfo = Field(
        default_factory=TrackingNumberInfo, alias="trackingNumberInfo"
    )
    latest_status_detail: LatestStatusDetail | None = Field(
        default=None, alias="latestStatusDetail"
    )
    date_and_times: list[DateAndTime] = Field(
        default_factory=list[DateAndTime], alias="dateAndTimes"
    )
    scan_events: list[ScanEvent] = Field(default_factory=list[ScanEvent], alias="scanEvents")
    delivery_details: DeliveryDetails | None = Field(default=None, alias="deliveryDetails")
    error: TrackResultError | None = None

    @property
    def is_error_only(self) -> bool:
        return self.error is not None and self.latest_status_detail is None and not self.scan_events


class CompleteTrackResult(FedExBaseModel):
    tracking_number: str = Field(alias="trackingNumber")
    track_results: list[TrackResult] = Field(
        default_factory=list[TrackResult], alias="trackResults"
    )


class TrackingOutput(FedExBaseModel):
    complete_track_results: list[CompleteTrackResult] = Field(
        default_factory=list[CompleteTrackResult], alias="completeTrackResults"
    )
    alerts: object | None = None


class TrackingResponse(FedExBaseModel):
    transaction_id: str | None = Field(default=None, alias="transactionId")
    customer_transaction_id: str | None = Field(default=None, alias="customerTransactionId")
    output: TrackingOutput
