"""Logging setup for the command line entry point."""

from __future__ import annotations

import logging
import os

# httpx logs every request at INFO; one line per FedEx call drowns the run summary.
NOISY_LOGGERS = ("httpx", "httpcore", "alembic.runtime.migration")


def resolve_log_level(default: int = logging.INFO) -> int:
    """Level from ``SHIPSYNC_LOG_LEVEL`` (a name such as ``DEBUG``), else ``default``."""

    name = os.getenv("SHIPSYNC_LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    Ledger transactions run on worker threads, so the thread name is part of the format.
    Pass ``force=True`` to reconfigure during tests.
    """

    effective = level if level is not None else resolve_log_level()
    logging.basicConfig(
        level=effective,
        format="%(asctime)s %(levelname)s [%(name)s:%(threadName)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(effective, logging.WARNING))
