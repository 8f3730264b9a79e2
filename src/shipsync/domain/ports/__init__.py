"""Domain ports consumed by the reconciliation engine."""

from __future__ import annotations

from .carrier import CarrierClient
from .persistence import (
    IncomeRepository,
    PolicyStore,
    Repository,
    ShipmentRepository,
    StatusEventRepository,
)
from .unit_of_work import LedgerRepositories, LedgerUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "CarrierClient",
    "IncomeRepository",
    "LedgerRepositories",
    "LedgerUnitOfWork",
    "PolicyStore",
    "Repository",
    "RepositoryCollection",
    "ShipmentRepository",
    "StatusEventRepository",
    "UnitOfWork",
]
