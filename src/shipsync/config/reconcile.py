"""Reconciliation run defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shipsync.common.retry import BackoffPolicy

from .env import optional_int_env_var
from .errors import ConfigurationError

DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_CARRIER_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    carrier_backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    billing_timezone: tzinfo = UTC
    status_weight_overrides: dict[str, int] = field(default_factory=dict[str, int])


def parse_status_weights(raw: str) -> dict[str, int]:
    """Parse ``"rejected=5, wrong_address=5"`` into a status -> weight mapping."""

    overrides: dict[str, int] = {}
    for chunk in raw.split(","):
        item = chunk.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"Invalid status weight entry: {item!r}")
        try:
            overrides[name.strip().lower()] = int(value)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid weight for {name.strip()!r}: {value!r}") from exc
    return overrides


def _billing_timezone() -> tzinfo:
    name = os.getenv("SHIPSYNC_BILLING_TIMEZONE")
    if name is None or not name.strip():
        return UTC
    try:
        return ZoneInfo(name.strip())
    except ZoneInfoNotFoundError as exc:
        raise ConfigurationError(f"Unknown billing timezone: {name}") from exc


def get_reconcile_config() -> ReconcileConfig:
    attempts = optional_int_env_var(
        "SHIPSYNC_CARRIER_ATTEMPTS", DEFAULT_CARRIER_ATTEMPTS, minimum=1
    )
    return ReconcileConfig(
        max_concurrency=optional_int_env_var(
            "SHIPSYNC_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, minimum=1
        ),
        carrier_backoff=BackoffPolicy(attempts=attempts),
        billing_timezone=_billing_timezone(),
        status_weight_overrides=parse_status_weights(os.getenv("SHIPSYNC_STATUS_WEIGHTS", "")),
    )
