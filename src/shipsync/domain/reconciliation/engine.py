"""Batch orchestrator for carrier reconciliation.

Each distinct tracking number is one task; tasks run concurrently up to
``max_concurrency``. Inside a task the carrier is queried (with retries) before the
ledger transaction opens, and the transaction itself runs on a worker thread so slow
database work does not stall other tracking numbers.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.common.retry import BackoffPolicy, retry_with_backoff

from .errors import (
    CarrierPayloadError,
    CarrierUnavailableError,
    ShipmentNotFoundError,
)
from .generation import select_generation
from .ledger import LedgerWriter
from .report import ErrorKind, ReconciliationReport

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from shipsync.domain.ports import CarrierClient, LedgerUnitOfWork

log = getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 5


def distinct_tracking_numbers(tracking_numbers: Iterable[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping the caller's order."""

    seen: dict[str, None] = {}
    for tracking_number in tracking_numbers:
        cleaned = tracking_number.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class ReconciliationEngine:
    """Reconcile shipments against carrier tracking data."""

    def __init__(
        self,
        carrier: CarrierClient,
        uow_factory: Callable[[], LedgerUnitOfWork],
        *,
        writer: LedgerWriter | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.carrier = carrier
        self.uow_factory = uow_factory
        self.writer = writer or LedgerWriter()
        self.max_concurrency = max_concurrency
        self.backoff = backoff or BackoffPolicy()

    def reconcile(
        self,
        tracking_numbers: Iterable[str],
        *,
        persist: bool = True,
    ) -> ReconciliationReport:
        """Synchronous wrapper around :meth:`reconcile_async`."""

        return asyncio.run(self.reconcile_async(tracking_numbers, persist=persist))

    async def reconcile_async(
        self,
        tracking_numbers: Iterable[str],
        *,
        persist: bool = True,
    ) -> ReconciliationReport:
        """Reconcile ``tracking_numbers``; ``persist=False`` computes the diff only."""

        report = ReconciliationReport(persist=persist)
        pending = distinct_tracking_numbers(tracking_numbers)
        if not pending:
            return report

        log.info(
            "Reconciling %s tracking number(s) (persist=%s, concurrency=%s)",
            len(pending),
            persist,
            self.max_concurrency,
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(tracking_number: str) -> None:
            async with semaphore:
                await self._reconcile_one(tracking_number, report, persist=persist)

        await asyncio.gather(*(_run(tracking_number) for tracking_number in pending))
        log.info("Reconciliation finished: %s", report.summary())
        return report

    async def _reconcile_one(
        self,
        tracking_number: str,
        report: ReconciliationReport,
        *,
        persist: bool,
    ) -> None:
        try:
            known_generation_id = await asyncio.to_thread(
                self._known_generation_id, tracking_number
            )
            results = await retry_with_backoff(
                lambda: self.carrier.track(tracking_number, known_generation_id),
                policy=self.backoff,
                retry_on=(CarrierUnavailableError,),
                description=f"carrier lookup for {tracking_number}",
            )
            if not results:
                log.info("No carrier data for %s; skipping", tracking_number)
                report.record_skipped(tracking_number)
                return

            selection = select_generation(results)
            outcome = await asyncio.to_thread(
                self.writer.apply,
                self.uow_factory(),
                tracking_number,
                selection,
                persist=persist,
            )
        except ShipmentNotFoundError as exc:
            log.warning("%s", exc)
            report.record_error(tracking_number, ErrorKind.SHIPMENT_NOT_FOUND, str(exc))
        except CarrierUnavailableError as exc:
            log.warning("Carrier unavailable for %s: %s", tracking_number, exc)
            report.record_error(tracking_number, ErrorKind.CARRIER_UNAVAILABLE, str(exc))
        except CarrierPayloadError as exc:
            log.warning("Invalid carrier payload for %s: %s", tracking_number, exc)
            report.record_error(tracking_number, ErrorKind.INVALID_PAYLOAD, str(exc))
        except Exception as exc:  # noqa: BLE001
            log.exception("Reconciliation of %s failed and was rolled back", tracking_number)
            report.record_error(
                tracking_number,
                ErrorKind.TRANSACTION_FAILURE,
                f"{type(exc).__name__}: {exc}",
            )
        else:
            report.record(outcome)

    def _known_generation_id(self, tracking_number: str) -> str | None:
        with self.uow_factory() as uow:
            shipments = uow.repositories.shipments.list_by_tracking_number(tracking_number)
        if not shipments:
            raise ShipmentNotFoundError(tracking_number)
        known = [
            shipment.carrier_generation_id
            for shipment in shipments
            if shipment.carrier_generation_id
        ]
        return known[-1] if known else None
