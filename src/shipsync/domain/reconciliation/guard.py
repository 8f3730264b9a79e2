"""Rules deciding whether a resolved target may overwrite the persisted status."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from shipsync.domain.model import (
    LOCAL_IN_PROGRESS_STATUSES,
    RETURN_STATUSES,
    ShipmentStatus,
)

if TYPE_CHECKING:
    from .resolve import StatusWeights

log = getLogger(__name__)

_AFTER_DELIVERED: frozenset[ShipmentStatus] = frozenset({ShipmentStatus.DELIVERED_BY_CARRIER})

_AFTER_RETURN: frozenset[ShipmentStatus] = frozenset(
    {
        ShipmentStatus.DELIVERED,
        ShipmentStatus.DELIVERED_BY_CARRIER,
        ShipmentStatus.REJECTED,
        ShipmentStatus.WRONG_ADDRESS,
        ShipmentStatus.CUSTOMER_UNAVAILABLE,
        *RETURN_STATUSES,
    }
)


class GuardRule(StrEnum):
    UNCHANGED = "unchanged"
    TERMINAL_LOCK = "terminal_lock"
    UNMAPPED_TARGET = "unmapped_target"
    RETURN_LOCK = "return_lock"
    ESCAPE_VALVE = "escape_valve"
    PRIORITY_PROTECT = "priority_protect"
    ALLOWED = "allowed"


@dataclass(frozen=True, slots=True, kw_only=True)
class GuardDecision:
    current: ShipmentStatus
    target: ShipmentStatus
    approved: bool
    rule: GuardRule
    reason: str

    @property
    def is_violation(self) -> bool:
        """A computed change was refused (as opposed to there being nothing to change)."""

        return not self.approved and self.rule is not GuardRule.UNCHANGED


def _decide(
    current: ShipmentStatus,
    target: ShipmentStatus,
    weights: StatusWeights,
) -> GuardDecision:
    def refuse(rule: GuardRule, reason: str) -> GuardDecision:
        return GuardDecision(
            current=current, target=target, approved=False, rule=rule, reason=reason
        )

    def allow(rule: GuardRule, reason: str) -> GuardDecision:
        return GuardDecision(
            current=current, target=target, approved=True, rule=rule, reason=reason
        )

    if target == current:
        return refuse(GuardRule.UNCHANGED, "status already current")

    if current == ShipmentStatus.DELIVERED_BY_CARRIER:
        return refuse(GuardRule.TERMINAL_LOCK, "delivered_by_carrier is final")
    if current == ShipmentStatus.DELIVERED:
        if target in _AFTER_DELIVERED:
            return allow(GuardRule.ALLOWED, "delivered corrected to delivered_by_carrier")
        return refuse(GuardRule.TERMINAL_LOCK, "delivered only accepts delivered_by_carrier")

    if target is ShipmentStatus.UNKNOWN:
        return refuse(GuardRule.UNMAPPED_TARGET, "unmapped status never overwrites")

    if current in RETURN_STATUSES and target not in _AFTER_RETURN:
        return refuse(GuardRule.RETURN_LOCK, f"{current} only accepts return outcomes")

    if current in LOCAL_IN_PROGRESS_STATUSES and target is ShipmentStatus.HANDED_TO_CARRIER:
        return allow(GuardRule.ESCAPE_VALVE, "package handed to external carrier")

    current_weight = weights.weight(current)
    target_weight = weights.weight(target)
    if current_weight >= weights.exception_tier and target_weight < current_weight:
        return refuse(
            GuardRule.PRIORITY_PROTECT,
            f"weight {target_weight} cannot overwrite protected weight {current_weight}",
        )

    return allow(GuardRule.ALLOWED, "transition permitted")


def guard_transition(
    current: ShipmentStatus,
    target: ShipmentStatus,
    weights: StatusWeights,
    *,
    tracking_number: str | None = None,
) -> GuardDecision:
    """Check ``current -> target`` against the ledger's no-regression rules."""

    decision = _decide(current, target, weights)
    if decision.is_violation:
        log.info(
            "Refused status change for %s: %s -> %s (%s: %s)",
            tracking_number or "<unknown>",
            current,
            target,
            decision.rule,
            decision.reason,
        )
    return decision
