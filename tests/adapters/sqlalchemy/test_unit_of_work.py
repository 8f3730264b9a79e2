from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from shipsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyLedgerUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from shipsync.domain.model import ShipmentStatus
from tests.helpers.shipments import at, make_shipment, make_status_event

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyLedgerUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_repositories_need_an_open_session(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyLedgerUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_commit_persists_across_units_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    shipment = make_shipment("T1")

    with SqlAlchemyLedgerUnitOfWork() as uow:
        uow.repositories.shipments.add(shipment)
        uow.repositories.status_events.add(
            make_status_event(
                shipment, status=ShipmentStatus.IN_TRANSIT, code="IT", timestamp=at(0)
            )
        )
        uow.commit()

    with SqlAlchemyLedgerUnitOfWork() as uow:
        [loaded] = uow.repositories.shipments.list_by_tracking_number("T1")
        assert loaded.id == shipment.id
        assert len(uow.repositories.status_events.list_for_shipment(shipment.id)) == 1


def test_exception_rolls_back_pending_writes(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError, match="boom"), SqlAlchemyLedgerUnitOfWork() as uow:
        uow.repositories.shipments.add(make_shipment("T1"))
        uow.session.flush()
        raise RuntimeError("boom")

    with SqlAlchemyLedgerUnitOfWork() as uow:
        assert uow.repositories.shipments.list_by_tracking_number("T1") == []


def test_uncommitted_writes_are_discarded(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyLedgerUnitOfWork() as uow:
        uow.repositories.shipments.add(make_shipment("T1"))

    with SqlAlchemyLedgerUnitOfWork() as uow:
        assert uow.repositories.shipments.pending_tracking_numbers() == []
