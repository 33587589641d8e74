"""Eligibility Calculator: per-class budgets and the sufficiency gate."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable

from collateral_domain import Ruleset

from .valuation import ValuatedSecurity

__all__ = ["EligibilityResult", "compute_eligibility"]

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class EligibilityResult:
    rqv: Decimal
    eligible_value: Dict[str, Decimal]
    available_value: Dict[str, Decimal]
    eligible_available: Dict[str, Decimal]
    total_eligible: Decimal

    @property
    def sufficient(self) -> bool:
        return self.total_eligible >= self.rqv


def compute_eligibility(
    rqv: Decimal, ruleset: Ruleset, securities: Iterable[ValuatedSecurity]
) -> EligibilityResult:
    eligible: Dict[str, Decimal] = {}
    for name in ruleset.classes():
        entry = ruleset.entry(name)
        eligible[name] = rqv * entry.concentration_limit / _HUNDRED

    available: Dict[str, Decimal] = {name: Decimal(0) for name in eligible}
    for sec in securities:
        if sec.collateral_form in available:
            available[sec.collateral_form] += sec.total_value

    eligible_available = {name: min(available[name], eligible[name]) for name in eligible}
    return EligibilityResult(
        rqv=rqv,
        eligible_value=eligible,
        available_value=available,
        eligible_available=eligible_available,
        total_eligible=sum(eligible_available.values(), Decimal(0)),
    )
