# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from shipsync.app import reconcile_pending_shipments, reconcile_shipments, register_shipment
from shipsync.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from shipsync.domain.reconciliation import ReconciliationReport

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("Value must be at least 1")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile shipments against carrier tracking")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Reconcile tracking numbers")
    reconcile.add_argument(
        "tracking_numbers",
        nargs="*",
        metavar="TRACKING_NUMBER",
        help="Tracking numbers to reconcile",
    )
    reconcile.add_argument(
        "--pending",
        action="store_true",
        help="Reconcile every tracking number that is not yet delivered",
    )
    reconcile.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the report without writing anything",
    )
    reconcile.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="Maximum tracking numbers processed at once (defaults to config)",
    )
    reconcile.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON",
    )

    register = subparsers.add_parser("register", help="Register a shipment")
    register.add_argument("tracking_number", type=str, help="Carrier tracking number")
    register.add_argument(
        "--subsidiary-id",
        type=str,
        help="Optional subsidiary id whose billing policy applies",
    )

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _validate(args: argparse.Namespace) -> None:
    if args.command == "register":
        args.subsidiary_id = _parse_uuid(args.subsidiary_id) if args.subsidiary_id else None
        return
    if args.command != "reconcile":
        return
    if args.pending and args.tracking_numbers:
        raise ValueError("Pass tracking numbers or --pending, not both")
    if not args.pending and not args.tracking_numbers:
        raise ValueError("Nothing to reconcile: pass tracking numbers or --pending")


def _print_report(report: ReconciliationReport, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.as_dict(), indent=2))
        return
    summary = ", ".join(f"{key}={value}" for key, value in report.summary().items())
    print(f"{'Reconciled' if report.persist else 'Dry run'}: {summary}")
    for update in report.updated:
        print(f"  {update.tracking_number}: {update.from_status} -> {update.to_status}")
    for error in report.errors:
        print(f"  {error.tracking_number}: {error.kind} ({error.message})")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "reconcile":
            persist = not parsed_args.dry_run
            if parsed_args.pending:
                report = reconcile_pending_shipments(
                    max_concurrency=parsed_args.concurrency,
                    persist=persist,
                )
            else:
                report = reconcile_shipments(
                    parsed_args.tracking_numbers,
                    max_concurrency=parsed_args.concurrency,
                    persist=persist,
                )
            _print_report(report, as_json=parsed_args.json)
        elif parsed_args.command == "register":
            shipment = register_shipment(
                parsed_args.tracking_number,
                subsidiary_id=parsed_args.subsidiary_id,
            )
            log.info("Registered shipment %s", shipment.id)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
