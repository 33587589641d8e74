"""Allocation Planner.

Greedy selection over the combined pool, cheapest priority rank first. Two
budgets run down together: the RQV still to cover and each class's eligible
value. Partial takes round the quantity up, then clamp the value to the class
budget, so no class ever contributes more than its eligible value.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Sequence

from collateral_domain import Ruleset
from collateral_domain.amounts import ceil_units

from .eligibility import EligibilityResult
from .errors import PlannerInvariantError
from .valuation import ValuatedSecurity

__all__ = [
    "AllocationPlan",
    "AllocationRecord",
    "order_by_priority",
    "plan_allocation",
    "priority_key",
]

_LOG = logging.getLogger(__name__)
_ZERO = Decimal(0)


@dataclass(frozen=True)
class AllocationRecord:
    security: ValuatedSecurity
    allocated_quantity: Decimal
    allocated_value: Decimal

    @property
    def security_id(self) -> str:
        return self.security.security_id

    @property
    def source_account(self) -> str:
        return self.security.account

    @property
    def collateral_form(self) -> str:
        return self.security.collateral_form

    @property
    def partial(self) -> bool:
        return self.allocated_quantity < self.security.quantity


@dataclass
class AllocationPlan:
    allocations: List[AllocationRecord] = field(default_factory=list)
    # pool position -> quantity taken
    consumed: Dict[int, Decimal] = field(default_factory=dict)
    rqv_left: Decimal = _ZERO
    class_budget_left: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def allocated_value(self) -> Decimal:
        return sum((rec.allocated_value for rec in self.allocations), _ZERO)

    def allocated_by_class(self) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for rec in self.allocations:
            totals[rec.collateral_form] = totals.get(rec.collateral_form, _ZERO) + rec.allocated_value
        return totals

    def consumed_by_security(self) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for rec in self.allocations:
            totals[rec.security_id] = totals.get(rec.security_id, _ZERO) + rec.allocated_quantity
        return totals


def priority_key(ruleset: Ruleset) -> Callable[[ValuatedSecurity], Decimal]:
    """Sort key bound to *ruleset*; lower rank is taken first."""

    def key(sec: ValuatedSecurity) -> Decimal:
        return ruleset.priority(sec.collateral_form)

    return key


def order_by_priority(securities: Sequence[ValuatedSecurity], ruleset: Ruleset) -> List[ValuatedSecurity]:
    # sorted() is stable: source holdings stay ahead of destination ones within a rank
    return sorted(securities, key=priority_key(ruleset))


def _take_quantity(target: Decimal, sec: ValuatedSecurity) -> Decimal:
    return min(ceil_units(target * sec.quantity / sec.total_value), sec.quantity)


def plan_allocation(
    securities: Sequence[ValuatedSecurity],
    eligibility: EligibilityResult,
    ruleset: Ruleset,
) -> AllocationPlan:
    """Select holdings until the RQV is covered.

    Only call once ``eligibility.sufficient`` holds; running out of holdings
    afterwards raises :class:`PlannerInvariantError`.
    """
    rqv_left = eligibility.rqv
    budget = dict(eligibility.eligible_value)
    plan = AllocationPlan(rqv_left=rqv_left, class_budget_left=budget)

    for sec in order_by_priority(securities, ruleset):
        if rqv_left <= 0:
            break
        class_left = budget.get(sec.collateral_form, _ZERO)
        if class_left <= 0:
            continue
        if sec.quantity <= 0 or sec.total_value <= 0:
            continue

        if sec.total_value <= class_left:
            if sec.total_value <= rqv_left:
                quantity, value = sec.quantity, sec.total_value
            else:
                quantity = _take_quantity(rqv_left, sec)
                value = min(quantity * sec.effective_unit_value, class_left)
        else:
            # class budget binds; never size past what the RQV still needs
            quantity = _take_quantity(min(class_left, rqv_left), sec)
            value = min(quantity * sec.effective_unit_value, class_left)

        rqv_left -= value
        budget[sec.collateral_form] = class_left - value
        plan.allocations.append(AllocationRecord(sec, quantity, value))
        plan.consumed[sec.position] = plan.consumed.get(sec.position, _ZERO) + quantity
        _LOG.debug(
            "take %s x %s (%s) = %s; rqv_left=%s %s_left=%s",
            quantity,
            sec.security_id,
            sec.collateral_form,
            value,
            rqv_left,
            sec.collateral_form,
            budget[sec.collateral_form],
        )

    plan.rqv_left = rqv_left
    if rqv_left > 0:
        raise PlannerInvariantError(
            f"Pool exhausted with {rqv_left} of RQV uncovered after the eligibility gate passed"
        )
    return plan
