"""SQLAlchemy adapter package for shipsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyIncomeRepository,
    SqlAlchemyPolicyStore,
    SqlAlchemyShipmentRepository,
    SqlAlchemyStatusEventRepository,
)
from .unit_of_work import SqlAlchemyLedgerUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyIncomeRepository",
    "SqlAlchemyLedgerUnitOfWork",
    "SqlAlchemyPolicyStore",
    "SqlAlchemyShipmentRepository",
    "SqlAlchemyStatusEventRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
