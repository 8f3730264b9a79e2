"""Per-subsidiary billing and tracking rules."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class SubsidiaryPolicy:
    """Typed rule set for one subsidiary (tenant).

    ``allowed_exception_codes`` empty means every code is expected; a non-empty set turns
    any other exception code into an "unusual code" report entry.
    """

    subsidiary_id: UUID | None = None
    cost_per_package: Decimal = Decimal("0.00")
    allowed_exception_codes: frozenset[str] = frozenset()
    repeat_attempt_codes: frozenset[str] = frozenset({"08"})
    min_repeat_attempts: int = 3
    rejection_codes: frozenset[str] = frozenset({"07"})
    bill_rejections: bool = True
    billable_exception_codes: frozenset[str] = frozenset()
    track_external_delivery: bool = False
    external_handoff_codes: frozenset[str] = frozenset({"OD"})

    def __post_init__(self) -> None:
        if self.min_repeat_attempts < 1:
            raise ValueError("min_repeat_attempts must be at least 1")

    def is_unusual(self, code: str) -> bool:
        return bool(self.allowed_exception_codes) and code not in self.allowed_exception_codes


DEFAULT_POLICY = SubsidiaryPolicy()
