from __future__ import annotations

import json
import uuid

import pytest

from shipsync.domain.model import ShipmentProjection, ShipmentStatus
from shipsync.domain.reconciliation import ErrorKind, ReconciliationReport, StatusUpdate
from shipsync.ui import cli


def _report(*, persist: bool = True) -> ReconciliationReport:
    report = ReconciliationReport(persist=persist)
    report.updated.append(
        StatusUpdate(
            tracking_number="T1",
            shipment_id=uuid.UUID(int=1),
            subsidiary_id=None,
            from_status=ShipmentStatus.PENDING,
            to_status=ShipmentStatus.DELIVERED,
            event_date=None,
            new_events=1,
        )
    )
    report.record_error("T2", ErrorKind.CARRIER_UNAVAILABLE, "HTTP 503")
    return report


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> dict[str, object]:
    calls: dict[str, object] = {}

    def fake_reconcile(tracking_numbers: list[str], **kwargs: object) -> ReconciliationReport:
        calls["reconcile"] = {"tracking_numbers": tracking_numbers, **kwargs}
        return _report(persist=bool(kwargs["persist"]))

    def fake_pending(**kwargs: object) -> ReconciliationReport:
        calls["pending"] = kwargs
        return _report(persist=bool(kwargs["persist"]))

    def fake_register(tracking_number: str, **kwargs: object) -> ShipmentProjection:
        calls["register"] = {"tracking_number": tracking_number, **kwargs}
        return ShipmentProjection(tracking_number=tracking_number)

    monkeypatch.setattr(cli, "reconcile_shipments", fake_reconcile)
    monkeypatch.setattr(cli, "reconcile_pending_shipments", fake_pending)
    monkeypatch.setattr(cli, "register_shipment", fake_register)
    return calls


def test_reconcile_tracking_numbers(
    captured: dict[str, object],
    capsys: pytest.CaptureFixture[str],
) -> None:
    cli.main(["reconcile", "T1", "T2", "--concurrency", "3"])

    assert captured["reconcile"] == {
        "tracking_numbers": ["T1", "T2"],
        "max_concurrency": 3,
        "persist": True,
    }
    out = capsys.readouterr().out
    assert out.startswith("Reconciled: updated=1, errors=1")
    assert "T1: pending -> delivered" in out
    assert "T2: carrier_unavailable (HTTP 503)" in out


def test_reconcile_pending_dry_run(
    captured: dict[str, object],
    capsys: pytest.CaptureFixture[str],
) -> None:
    cli.main(["reconcile", "--pending", "--dry-run"])

    assert captured["pending"] == {"max_concurrency": None, "persist": False}
    assert "reconcile" not in captured
    assert capsys.readouterr().out.startswith("Dry run:")


def test_reconcile_json_output(
    captured: dict[str, object],
    capsys: pytest.CaptureFixture[str],
) -> None:
    cli.main(["reconcile", "T1", "--json"])

    assert "reconcile" in captured
    document = json.loads(capsys.readouterr().out)
    assert document["summary"]["updated"] == 1
    assert document["updated"][0]["to_status"] == "delivered"
    assert document["errors"][0]["kind"] == "carrier_unavailable"


@pytest.mark.parametrize("argv", [["reconcile"], ["reconcile", "T1", "--pending"]])
def test_validation_errors_exit_with_code_two(
    captured: dict[str, object],
    argv: list[str],
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 2
    assert captured == {}


def test_concurrency_must_be_positive(captured: dict[str, object]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["reconcile", "T1", "--concurrency", "0"])

    assert excinfo.value.code == 2
    assert captured == {}


def test_register_passes_subsidiary(captured: dict[str, object]) -> None:
    subsidiary_id = uuid.uuid4()

    cli.main(["register", "794635405505", "--subsidiary-id", str(subsidiary_id)])

    assert captured["register"] == {
        "tracking_number": "794635405505",
        "subsidiary_id": subsidiary_id,
    }


def test_failures_exit_with_code_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(*_: object, **__: object) -> ReconciliationReport:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(cli, "reconcile_shipments", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["reconcile", "T1"])

    assert excinfo.value.code == 1


def test_register_rejects_malformed_subsidiary(captured: dict[str, object]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["register", "T1", "--subsidiary-id", "not-a-uuid"])

    assert excinfo.value.code == 2
    assert captured == {}
