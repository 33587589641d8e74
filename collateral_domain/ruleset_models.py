"""Eligibility rulesets and FX rate tables.

A ruleset maps each asset class (collateral form) to
``[concentration_limit_pct, priority_rank, valuation_pct]``. Rank 1 is
selected first.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .amounts import parse_decimal

__all__ = ["RateTable", "RuleEntry", "Ruleset"]


@dataclass(frozen=True, slots=True)
class RuleEntry:
    concentration_limit: Decimal
    priority: Decimal
    valuation_pct: Decimal


class Ruleset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    security: Dict[str, List[float]] = Field(default_factory=dict, alias="Security")
    base_currency: str = Field("", alias="BaseCurrency")
    eligible_currency: List[str] = Field(default_factory=list, alias="EligibleCurrency")

    def entry(self, collateral_form: str) -> Optional[RuleEntry]:
        """Return the parsed entry for *collateral_form*, or None if absent or short."""
        values = self.security.get(collateral_form)
        if not values or len(values) < 3:
            return None
        limit, priority, valuation = values[:3]
        return RuleEntry(
            concentration_limit=parse_decimal(limit, field=f"{collateral_form}.limit"),
            priority=parse_decimal(priority, field=f"{collateral_form}.priority"),
            valuation_pct=parse_decimal(valuation, field=f"{collateral_form}.valuation"),
        )

    def accepts(self, collateral_form: str) -> bool:
        return self.entry(collateral_form) is not None

    def priority(self, collateral_form: str) -> Decimal:
        entry = self.entry(collateral_form)
        if entry is None:
            raise KeyError(collateral_form)
        return entry.priority

    def classes(self) -> List[str]:
        return [name for name in self.security if self.accepts(name)]

    def restricted_to(self, classes: List[str]) -> "Ruleset":
        """Copy keeping only *classes*."""
        kept = {name: list(self.security[name]) for name in classes if name in self.security}
        return self.model_copy(update={"security": kept})

    def as_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class RateTable(BaseModel):
    """Units of each currency per one unit of ``base``, as of ``date``."""

    base: str
    date: str = ""
    rates: Dict[str, float] = Field(default_factory=dict)

    def rate_for(self, currency: str, target_currency: str) -> Decimal:
        """Divisor converting a *currency* price into *target_currency*.

        Same-currency conversions are 1 regardless of the table contents.
        """
        if currency == target_currency:
            return Decimal(1)
        if currency not in self.rates:
            raise KeyError(currency)
        rate = parse_decimal(self.rates[currency], field=f"rates.{currency}")
        if rate <= 0:
            raise ValueError(f"rates.{currency}: non-positive rate {rate}")
        return rate

    def as_payload(self) -> dict:
        return self.model_dump()
