"""Security Valuator.

Prices every holding of both accounts whose asset class the accepted ruleset
knows, converts the price into the RQV currency and applies the class
valuation haircut::

    effective_unit_value = price / rate * valuation_pct / 100
    total_value          = effective_unit_value * quantity

The effective unit value is kept to cents, as it is stored on the record.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Sequence

from collateral_domain import RateTable, Ruleset, Security
from collateral_domain.amounts import format_amount, parse_decimal, to_cents

from .config import ParseFailurePolicy
from .errors import CollaboratorError, RecordParseError

__all__ = [
    "DESTINATION",
    "SOURCE",
    "PriceSource",
    "Valuation",
    "ValuatedSecurity",
    "parse_quantity",
    "valuate_accounts",
    "value_holding",
]

_LOG = logging.getLogger(__name__)

SOURCE = "source"
DESTINATION = "destination"
_HUNDRED = Decimal(100)


class PriceSource(Protocol):
    async def get_price(self, security_id: str) -> Decimal:
        ...


@dataclass(frozen=True)
class ValuatedSecurity:
    """A holding enriched with the figures of one allocation run.

    ``position`` is the holding's index in the combined pool (source account
    holdings first), which identifies it even when a security id repeats.
    """

    record: Security
    origin: str
    account: str
    position: int
    collateral_form: str
    quantity: Decimal
    market_price: Decimal
    rate: Decimal
    valuation_pct: Decimal
    effective_unit_value: Decimal
    total_value: Decimal

    @property
    def security_id(self) -> str:
        return self.record.security_id

    def priced_record(self) -> Security:
        """The stored record with the valuation fields filled in."""
        return self.record.model_copy(
            update={
                "mtm": str(self.market_price),
                "value_percentage": format_amount(self.valuation_pct),
                "effective_value_changed": format_amount(self.effective_unit_value),
                "total_value": format_amount(self.total_value),
            }
        )


@dataclass
class Valuation:
    securities: List[ValuatedSecurity] = field(default_factory=list)
    # positions of holdings left out: class not in the ruleset, or unparseable
    excluded: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    def by_position(self) -> Dict[int, ValuatedSecurity]:
        return {sec.position: sec for sec in self.securities}

    def available_value(self) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for sec in self.securities:
            totals[sec.collateral_form] = totals.get(sec.collateral_form, Decimal(0)) + sec.total_value
        return totals


def parse_quantity(record: Security) -> Decimal:
    try:
        quantity = parse_decimal(record.security_quantity, field=f"{record.security_id}.securityQuantity")
    except ValueError as exc:
        raise RecordParseError(str(exc)) from exc
    if quantity < 0:
        raise RecordParseError(f"{record.security_id}.securityQuantity: negative quantity {quantity}")
    return quantity


def value_holding(
    record: Security,
    *,
    price: Decimal,
    quantity: Decimal,
    ruleset: Ruleset,
    rates: RateTable,
    rqv_currency: str,
    origin: str,
    position: int,
) -> ValuatedSecurity:
    """Value one holding from an already fetched price. Pure."""
    entry = ruleset.entry(record.collateral_form)
    if entry is None:
        raise KeyError(record.collateral_form)
    currency = record.currency or rqv_currency
    try:
        rate = rates.rate_for(currency, rqv_currency)
    except KeyError as exc:
        raise CollaboratorError(f"No FX rate for {currency} against {rqv_currency}") from exc
    except ValueError as exc:
        raise CollaboratorError(str(exc)) from exc

    effective_unit_value = to_cents(price / rate * entry.valuation_pct / _HUNDRED)
    return ValuatedSecurity(
        record=record,
        origin=origin,
        account=record.account_number,
        position=position,
        collateral_form=record.collateral_form,
        quantity=quantity,
        market_price=price,
        rate=rate,
        valuation_pct=entry.valuation_pct,
        effective_unit_value=effective_unit_value,
        total_value=effective_unit_value * quantity,
    )


async def valuate_accounts(
    source_holdings: Sequence[Security],
    destination_holdings: Sequence[Security],
    *,
    ruleset: Ruleset,
    rates: RateTable,
    rqv_currency: str,
    prices: PriceSource,
    policy: ParseFailurePolicy = ParseFailurePolicy.ABORT,
    transaction_id: Optional[str] = None,
) -> Valuation:
    """Value both accounts' holdings, source first, fetching one price per holding."""
    valuation = Valuation()
    tagged = [(SOURCE, rec) for rec in source_holdings] + [(DESTINATION, rec) for rec in destination_holdings]
    for position, (origin, record) in enumerate(tagged):
        if not ruleset.accepts(record.collateral_form):
            valuation.excluded.append(position)
            continue
        try:
            quantity = parse_quantity(record)
        except RecordParseError as exc:
            if policy is ParseFailurePolicy.ABORT:
                raise RecordParseError(exc.message, transaction_id=transaction_id) from exc
            _LOG.warning(
                "skipping holding %s in %s: %s",
                record.security_id,
                record.account_number,
                exc.message,
                extra={"transaction_id": transaction_id, "account": record.account_number},
            )
            valuation.skipped.append(position)
            continue

        price = await prices.get_price(record.security_id)
        sec = value_holding(
            record,
            price=price,
            quantity=quantity,
            ruleset=ruleset,
            rates=rates,
            rqv_currency=rqv_currency,
            origin=origin,
            position=position,
        )
        _LOG.debug(
            "%s %s: price=%s rate=%s euv=%s total=%s",
            record.collateral_form,
            record.security_id,
            price,
            sec.rate,
            sec.effective_unit_value,
            sec.total_value,
            extra={"transaction_id": transaction_id},
        )
        valuation.securities.append(sec)
    return valuation
