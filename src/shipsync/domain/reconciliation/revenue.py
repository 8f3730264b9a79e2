"""Income recognition, at most once per tracking number per ISO week."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.domain.model import IncomeRecord, IncomeType, ShipmentStatus

from .normalize import clean_code, header_coded_delivered, normalize_header

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from shipsync.domain.model import (
        ShipmentProjection,
        StatusEvent,
        StatusHeader,
        SubsidiaryPolicy,
    )
    from shipsync.domain.ports import IncomeRepository

    from .normalize import NormalizedEvent

log = getLogger(__name__)


def iso_week_key(moment: datetime, tz: tzinfo = UTC) -> str:
    """Return the Monday-start ISO week of ``moment`` in ``tz`` as ``"YYYY-Www"``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    year, week, _ = moment.astimezone(tz).isocalendar()
    return f"{year}-W{week:02d}"


@dataclass(frozen=True, slots=True)
class Charge:
    """A chargeable moment found in the carrier data."""

    income_type: IncomeType
    date: datetime
    non_delivery_code: str | None = None


def _count_repeat_attempts(
    events: Iterable[StatusEvent],
    *,
    codes: frozenset[str],
    created_at: datetime,
) -> int:
    return sum(
        1
        for event in events
        if event.timestamp >= created_at and clean_code(event.exception_code) in codes
    )


def find_charges(
    events: Sequence[NormalizedEvent],
    *,
    created_at: datetime,
    target: ShipmentStatus,
    policy: SubsidiaryPolicy,
    persisted: Iterable[StatusEvent] = (),
) -> list[Charge]:
    """Return one ``Charge`` per chargeable event in ``events`` (chronological).

    Repeat attempts are counted across the persisted ledger so the N-th attempt fires
    exactly once, whichever pass it arrives in.
    """

    repeat_codes = frozenset(clean_code(code) for code in policy.repeat_attempt_codes)
    rejection_codes = frozenset(clean_code(code) for code in policy.rejection_codes)
    billable_codes = frozenset(clean_code(code) for code in policy.billable_exception_codes)
    attempts = _count_repeat_attempts(persisted, codes=repeat_codes, created_at=created_at)

    charges: list[Charge] = []
    for event in events:
        if event.timestamp < created_at:
            continue
        if event.status is ShipmentStatus.DELIVERED:
            if target is not ShipmentStatus.DELIVERED_BY_CARRIER:
                charges.append(Charge(IncomeType.DELIVERED, event.timestamp))
            continue
        if event.code in rejection_codes and policy.bill_rejections:
            charges.append(Charge(IncomeType.NOT_DELIVERED, event.timestamp, event.code))
            continue
        if event.code in billable_codes:
            charges.append(Charge(IncomeType.NOT_DELIVERED, event.timestamp, event.code))
            continue
        if event.code in repeat_codes:
            attempts += 1
            if attempts == policy.min_repeat_attempts:
                charges.append(Charge(IncomeType.NOT_DELIVERED, event.timestamp, event.code))
    return charges


class RevenueRecognizer:
    """Turn chargeable carrier events into idempotent income records."""

    def __init__(self, *, billing_timezone: tzinfo = UTC) -> None:
        self.billing_timezone = billing_timezone

    def week_key(self, moment: datetime) -> str:
        return iso_week_key(moment, self.billing_timezone)

    def recognize(  # noqa: PLR0913
        self,
        *,
        shipment: ShipmentProjection,
        events: Sequence[NormalizedEvent],
        persisted: Sequence[StatusEvent],
        target: ShipmentStatus,
        header: StatusHeader,
        policy: SubsidiaryPolicy,
        incomes: IncomeRepository,
        paid_weeks: set[str],
    ) -> list[IncomeRecord]:
        """Record income for ``shipment`` and return the records created.

        ``paid_weeks`` is shared by every sibling of the tracking number during one pass
        and is updated in place.
        """

        charges = find_charges(
            events,
            created_at=shipment.created_at,
            target=target,
            policy=policy,
            persisted=persisted,
        )
        fallback = self._safety_net_charge(
            shipment, charges, header, persisted=persisted, incomes=incomes
        )
        if fallback is not None:
            log.info(
                "Header reports %s delivered without a delivery scan; using %s",
                shipment.tracking_number,
                fallback.date.isoformat(),
            )
            charges.append(fallback)

        created: list[IncomeRecord] = []
        for charge in charges:
            week = self.week_key(charge.date)
            if week in paid_weeks:
                continue
            paid_weeks.add(week)
            if incomes.exists_for_week(shipment.tracking_number, week):
                continue
            record = IncomeRecord(
                tracking_number=shipment.tracking_number,
                income_type=charge.income_type,
                cost=policy.cost_per_package,
                date=charge.date,
                iso_week_key=week,
                shipment_id=shipment.id,
                subsidiary_id=shipment.subsidiary_id,
                non_delivery_code=charge.non_delivery_code,
            )
            incomes.add(record)
            created.append(record)
            log.info(
                "Recognized %s income for %s in %s",
                charge.income_type,
                shipment.tracking_number,
                week,
            )
        return created

    @staticmethod
    def _safety_net_charge(
        shipment: ShipmentProjection,
        charges: Sequence[Charge],
        header: StatusHeader,
        *,
        persisted: Sequence[StatusEvent],
        incomes: IncomeRepository,
    ) -> Charge | None:
        """Delivery charge from the header when the carrier omitted the delivery scan.

        Only applies once: a delivery already in the ledger (scan or income) means an
        earlier pass has billed it, whatever week the header date falls in.
        """

        delivered_at = header.actual_delivery_at
        if delivered_at is None or delivered_at < shipment.created_at:
            return None
        header_delivered = header_coded_delivered(header) or (
            normalize_header(header) is ShipmentStatus.DELIVERED
        )
        if not header_delivered:
            return None
        if shipment.status != ShipmentStatus.DELIVERED:
            return None
        if any(charge.income_type is IncomeType.DELIVERED for charge in charges):
            return None
        if any(
            event.status is ShipmentStatus.DELIVERED and event.timestamp >= shipment.created_at
            for event in persisted
        ):
            return None
        if any(
            income.income_type is IncomeType.DELIVERED
            for income in incomes.list_for_tracking_number(shipment.tracking_number)
        ):
            return None
        return Charge(IncomeType.DELIVERED, delivered_at)
