"""Carrier-status reconciliation and revenue recognition."""

from __future__ import annotations

from .engine import ReconciliationEngine, distinct_tracking_numbers
from .errors import (
    CarrierError,
    CarrierPayloadError,
    CarrierUnavailableError,
    ReconciliationError,
    ShipmentNotFoundError,
)
from .generation import GenerationSelection, generation_sequence, select_generation
from .guard import GuardDecision, GuardRule, guard_transition
from .ledger import LedgerOutcome, LedgerWriter, ShipmentOutcome
from .normalize import (
    NormalizedEvent,
    event_signature,
    new_events,
    normalize_event,
    normalize_header,
)
from .report import (
    ErrorKind,
    PendingPickup,
    RecognizedIncome,
    ReconciliationReport,
    RejectedTransition,
    ReportedError,
    StatusUpdate,
    UnusualCode,
    UnusualReason,
)
from .resolve import DEFAULT_STATUS_WEIGHTS, Resolution, StatusWeights, resolve_target
from .revenue import Charge, RevenueRecognizer, find_charges, iso_week_key

__all__ = [
    "DEFAULT_STATUS_WEIGHTS",
    "CarrierError",
    "CarrierPayloadError",
    "CarrierUnavailableError",
    "Charge",
    "ErrorKind",
    "GenerationSelection",
    "GuardDecision",
    "GuardRule",
    "LedgerOutcome",
    "LedgerWriter",
    "NormalizedEvent",
    "PendingPickup",
    "RecognizedIncome",
    "ReconciliationEngine",
    "ReconciliationError",
    "ReconciliationReport",
    "RejectedTransition",
    "ReportedError",
    "Resolution",
    "RevenueRecognizer",
    "ShipmentNotFoundError",
    "ShipmentOutcome",
    "StatusUpdate",
    "StatusWeights",
    "UnusualCode",
    "UnusualReason",
    "distinct_tracking_numbers",
    "event_signature",
    "find_charges",
    "generation_sequence",
    "guard_transition",
    "iso_week_key",
    "new_events",
    "normalize_event",
    "normalize_header",
    "resolve_target",
    "select_generation",
]
