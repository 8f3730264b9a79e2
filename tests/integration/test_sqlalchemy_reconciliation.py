"""End-to-end reconciliation against the SQLAlchemy ledger."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import pytest

from shipsync.adapters.fedex import FedExClient
from shipsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from shipsync.adapters.sqlalchemy.repositories import SqlAlchemyPolicyStore
from shipsync.common.retry import BackoffPolicy
from shipsync.config.fedex import FedExConfig
from shipsync.domain.model import IncomeType, ShipmentStatus, SubsidiaryPolicy
from shipsync.domain.reconciliation import GuardRule, ReconciliationEngine
from tests.helpers.ledger import FakeCarrierClient
from tests.helpers.shipments import at, make_result, make_scan, make_shipment

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from shipsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyLedgerUnitOfWork
    from shipsync.domain.model import (
        CarrierTrackResult,
        IncomeRecord,
        ShipmentProjection,
        StatusEvent,
    )

pytestmark = pytest.mark.integration

type UnitOfWorkFactory = Callable[[], SqlAlchemyLedgerUnitOfWork]

NO_WAIT = BackoffPolicy(attempts=2, backoff_factor=0.0, backoff_jitter=0.0)
FIXTURES = Path(__file__).resolve().parents[1] / "data" / "fedex"


def _engine(
    carrier: FakeCarrierClient | FedExClient,
    uow_factory: UnitOfWorkFactory,
) -> ReconciliationEngine:
    # SQLite serialises writers; one tracking number at a time keeps the run deterministic.
    return ReconciliationEngine(carrier, uow_factory, max_concurrency=1, backoff=NO_WAIT)


def _carrier(results: Mapping[str, Sequence[CarrierTrackResult]]) -> FakeCarrierClient:
    return FakeCarrierClient(results)


def _seed(uow_factory: UnitOfWorkFactory, *shipments: ShipmentProjection) -> None:
    with uow_factory() as uow:
        for shipment in shipments:
            uow.repositories.shipments.add(shipment)
        uow.commit()


def _load(
    uow_factory: UnitOfWorkFactory,
    tracking_number: str,
) -> tuple[list[ShipmentProjection], list[StatusEvent], list[IncomeRecord]]:
    with uow_factory() as uow:
        shipments = uow.repositories.shipments.list_by_tracking_number(tracking_number)
        events = [
            event
            for shipment in shipments
            for event in uow.repositories.status_events.list_for_shipment(shipment.id)
        ]
        incomes = uow.repositories.incomes.list_for_tracking_number(tracking_number)
    return shipments, events, incomes


def test_first_delivery_is_persisted_and_billed_once(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    _seed(sqlite_unit_of_work, make_shipment("T1"))
    carrier = _carrier(
        {
            "T1": [
                make_result(
                    "T1",
                    code="DL",
                    generation_id="3~T1~FDEG",
                    events=[make_scan("IT", timestamp=at(0)), make_scan("DL", timestamp=at(1))],
                )
            ]
        }
    )
    engine = _engine(carrier, sqlite_unit_of_work)

    first = engine.reconcile(["T1"])
    second = engine.reconcile(["T1"])

    [shipment], events, incomes = _load(sqlite_unit_of_work, "T1")
    assert shipment.status is ShipmentStatus.DELIVERED
    assert shipment.carrier_generation_id == "3~T1~FDEG"
    assert [event.exception_code for event in events] == ["IT", "DL"]
    assert [(income.income_type, income.iso_week_key) for income in incomes] == [
        (IncomeType.DELIVERED, "2025-W10")
    ]
    assert first.summary()["updated"] == 1
    assert first.summary()["new_events"] == 2
    assert second.summary() == {
        "updated": 0,
        "errors": 0,
        "unusual_codes": 0,
        "pending_pickup": 0,
        "skipped": 0,
        "rejected": 0,
        "incomes": 0,
        "new_events": 0,
    }
    assert carrier.calls == [("T1", None), ("T1", "3~T1~FDEG")]


def test_repeat_attempts_bill_once_across_passes(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    _seed(sqlite_unit_of_work, make_shipment("T2", status=ShipmentStatus.IN_TRANSIT))
    attempts = [make_scan("DE", exception_code="08", timestamp=at(day)) for day in range(3)]
    first_pass = make_result("T2", code="DE", exception_code="08", events=attempts[:2])
    second_pass = make_result("T2", code="DE", exception_code="08", events=attempts)

    _engine(_carrier({"T2": [first_pass]}), sqlite_unit_of_work).reconcile(["T2"])
    _, _, incomes = _load(sqlite_unit_of_work, "T2")
    assert incomes == []

    report = _engine(_carrier({"T2": [second_pass]}), sqlite_unit_of_work).reconcile(["T2"])

    [shipment], events, incomes = _load(sqlite_unit_of_work, "T2")
    assert shipment.status is ShipmentStatus.CUSTOMER_UNAVAILABLE
    assert len(events) == 3
    assert [(income.income_type, income.non_delivery_code) for income in incomes] == [
        (IncomeType.NOT_DELIVERED, "08")
    ]
    assert [income.date for income in report.incomes] == [at(2)]


def test_delivered_shipment_does_not_regress(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    _seed(sqlite_unit_of_work, make_shipment("T3", status=ShipmentStatus.DELIVERED))
    carrier = _carrier(
        {"T3": [make_result("T3", code="IT", events=[make_scan("IT", timestamp=at(2))])]}
    )

    report = _engine(carrier, sqlite_unit_of_work).reconcile(["T3"])

    [shipment], events, incomes = _load(sqlite_unit_of_work, "T3")
    assert shipment.status is ShipmentStatus.DELIVERED
    assert [event.status for event in events] == [ShipmentStatus.IN_TRANSIT]
    assert incomes == []
    [rejected] = report.rejected
    assert rejected.rule is GuardRule.TERMINAL_LOCK


def test_external_handoff_uses_the_escape_valve(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    subsidiary_id = uuid.uuid4()
    with sqlite_unit_of_work() as uow:
        SqlAlchemyPolicyStore(uow.session).save_policy(
            SubsidiaryPolicy(
                subsidiary_id=subsidiary_id,
                cost_per_package=Decimal("2.50"),
                track_external_delivery=True,
            )
        )
        uow.commit()
    _seed(
        sqlite_unit_of_work,
        make_shipment("T4", status=ShipmentStatus.EN_ROUTE, subsidiary_id=subsidiary_id),
    )
    handed_over = [
        make_scan("IT", exception_code="OD", timestamp=at(0)),
        make_scan("IT", timestamp=at(1)),
    ]

    _engine(
        _carrier({"T4": [make_result("T4", code="IT", events=handed_over)]}),
        sqlite_unit_of_work,
    ).reconcile(["T4"])
    [shipment], _, _ = _load(sqlite_unit_of_work, "T4")
    assert shipment.status is ShipmentStatus.HANDED_TO_CARRIER

    delivered = [*handed_over, make_scan("DL", timestamp=at(2))]
    _engine(
        _carrier({"T4": [make_result("T4", code="DL", events=delivered)]}),
        sqlite_unit_of_work,
    ).reconcile(["T4"])

    [shipment], events, incomes = _load(sqlite_unit_of_work, "T4")
    assert shipment.status is ShipmentStatus.DELIVERED_BY_CARRIER
    assert len(events) == 3
    assert incomes == []


def test_latest_generation_wins(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    _seed(sqlite_unit_of_work, make_shipment("T5"))
    stale = make_result(
        "T5", code="RS", generation_id="7~T5~FDEG", events=[make_scan("RS", timestamp=at(3))]
    )
    current = make_result(
        "T5", code="IT", generation_id="8~T5~FDEG", events=[make_scan("IT", timestamp=at(1))]
    )

    _engine(_carrier({"T5": [stale, current]}), sqlite_unit_of_work).reconcile(["T5"])

    [shipment], events, _ = _load(sqlite_unit_of_work, "T5")
    assert shipment.status is ShipmentStatus.IN_TRANSIT
    assert shipment.carrier_generation_id == "8~T5~FDEG"
    assert [event.exception_code for event in events] == ["IT"]


def test_siblings_share_one_income_per_week(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    first = make_shipment("T6", created_at=datetime(2025, 3, 1, tzinfo=UTC))
    second = make_shipment("T6", created_at=datetime(2025, 3, 2, tzinfo=UTC))
    _seed(sqlite_unit_of_work, first, second)
    carrier = _carrier(
        {"T6": [make_result("T6", code="DL", events=[make_scan("DL", timestamp=at(1))])]}
    )

    report = _engine(carrier, sqlite_unit_of_work).reconcile(["T6"])

    shipments, events, incomes = _load(sqlite_unit_of_work, "T6")
    assert [shipment.status for shipment in shipments] == [ShipmentStatus.DELIVERED] * 2
    assert len(events) == 2
    assert [income.shipment_id for income in incomes] == [first.id]
    assert report.summary()["updated"] == 2


def test_dry_run_writes_nothing(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    _seed(sqlite_unit_of_work, make_shipment("T7"))
    carrier = _carrier(
        {"T7": [make_result("T7", code="DL", events=[make_scan("DL", timestamp=at(1))])]}
    )

    report = _engine(carrier, sqlite_unit_of_work).reconcile(["T7"], persist=False)

    [shipment], events, incomes = _load(sqlite_unit_of_work, "T7")
    assert shipment.status is ShipmentStatus.PENDING
    assert events == []
    assert incomes == []
    assert report.summary()["updated"] == 1
    assert report.summary()["incomes"] == 1


def test_unknown_tracking_number_is_reported(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    carrier = _carrier({})

    report = _engine(carrier, sqlite_unit_of_work).reconcile(["NOPE"])

    assert [error.tracking_number for error in report.errors] == ["NOPE"]
    assert carrier.calls == []


def test_fedex_payload_reconciles_into_the_ledger(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    payload = json.loads((FIXTURES / "track_delivered.json").read_text())
    tracking_number = "794635405505"
    _seed(
        sqlite_unit_of_work,
        make_shipment(tracking_number, created_at=datetime(2025, 3, 2, tzinfo=UTC)),
    )

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "token", "expires_in": 3600})
        return httpx.Response(200, json=payload)

    def client_factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    carrier = FedExClient(
        config=FedExConfig(
            client_id="client-id",
            client_secret="client-secret",
            resilience=ResilienceConfig(name="fedex-test", base_url="https://fedex.test"),
        ),
        client_factory=client_factory,
    )

    report = _engine(carrier, sqlite_unit_of_work).reconcile([tracking_number])

    [shipment], events, incomes = _load(sqlite_unit_of_work, tracking_number)
    assert report.errors == []
    assert shipment.status is ShipmentStatus.DELIVERED
    assert shipment.carrier_generation_id == "12029~794635405505~FDEG"
    assert shipment.received_by_name == "J.DOE"
    assert len(events) == 3
    assert [(income.income_type, income.iso_week_key) for income in incomes] == [
        (IncomeType.DELIVERED, "2025-W10")
    ]
