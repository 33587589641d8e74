"""Settlement Applier.

Every write is staged before any is issued. Applying a staged settlement
flushes both accounts and rewrites them: residuals go back to the account
each holding came from, allocations become new holdings in the destination
account, and holdings the run did not value are written back untouched.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, ConfigDict, Field

from collateral_domain import (AllocationStatus, RateTable, Ruleset, Security,
                               Transaction, TransactionStatus)
from collateral_domain.amounts import format_amount

from .planner import AllocationPlan
from .stores.base import AccountStore, DealStore
from .valuation import Valuation

__all__ = [
    "SettlementReport",
    "StagedSettlement",
    "apply_pending",
    "apply_settlement",
    "build_report",
    "format_quantity",
    "stage_settlement",
]

_LOG = logging.getLogger(__name__)


def format_quantity(value: Decimal) -> str:
    return format_amount(value)


class SettlementReport(BaseModel):
    """Success notification payload."""

    model_config = ConfigDict(populate_by_name=True)

    deal_id: str = Field(alias="dealId")
    transaction_id: str = Field(alias="transactionId")
    margin_call_date: str = Field(alias="marginCallDate")
    pledger: str
    pledgee: str
    pledger_longbox_account: str = Field(alias="pledgerLongboxAccount")
    pledgee_segregated_account: str = Field(alias="pledgeeSegregatedAccount")
    rqv: str = Field(alias="RQV")
    currency: str = Field(alias="Currency")
    public_ruleset: Dict[str, Any] = Field(alias="publicRuleSet")
    private_ruleset: Dict[str, Any] = Field(alias="privateRuleset")
    currency_conversion_rate: Dict[str, Any] = Field(alias="currencyConversionRate")
    pledger_longbox_securities: List[Dict[str, Any]] = Field(alias="pledgerLongboxSecurities")
    pledgee_segregated_securities: List[Dict[str, Any]] = Field(alias="pledgeeSegregatedSecurities")
    allocation_date: str = Field(alias="allocationDate")
    allocation_status: str = Field(AllocationStatus.SUCCESSFUL.value, alias="allocationStatus")

    def as_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class StagedSettlement:
    source_account: str
    destination_account: str
    source_holdings: List[Security] = field(default_factory=list)
    destination_holdings: List[Security] = field(default_factory=list)
    allocated: List[Security] = field(default_factory=list)

    def writes(self) -> List[Security]:
        return self.source_holdings + self.destination_holdings + self.allocated


def stage_settlement(
    source_holdings: Sequence[Security],
    destination_holdings: Sequence[Security],
    valuation: Valuation,
    plan: AllocationPlan,
    *,
    source_account: str,
    destination_account: str,
) -> StagedSettlement:
    """Compute the post-allocation contents of both accounts. Pure."""
    staged = StagedSettlement(source_account=source_account, destination_account=destination_account)
    valued = valuation.by_position()
    pool = list(source_holdings) + list(destination_holdings)

    for position, record in enumerate(pool):
        into = staged.source_holdings if position < len(source_holdings) else staged.destination_holdings
        sec = valued.get(position)
        if sec is None:
            into.append(record)
            continue
        # fully taken holdings stay as zero-quantity rows
        residual = max(sec.quantity - plan.consumed.get(position, Decimal(0)), Decimal(0))
        into.append(
            sec.priced_record().model_copy(
                update={
                    "security_quantity": format_quantity(residual),
                    "total_value": format_amount(sec.effective_unit_value * residual),
                }
            )
        )

    for rec in plan.allocations:
        staged.allocated.append(
            rec.security.priced_record().model_copy(
                update={
                    "account_number": destination_account,
                    "security_quantity": format_quantity(rec.allocated_quantity),
                    "total_value": format_amount(rec.allocated_value),
                }
            )
        )
    return staged


def apply_settlement(
    staged: StagedSettlement,
    transaction: Transaction,
    rates: RateTable,
    *,
    accounts: AccountStore,
    deals: DealStore,
) -> Transaction:
    """Rewrite both accounts, then mark the transaction completed."""
    for account in dict.fromkeys([staged.source_account, staged.destination_account]):
        accounts.remove_securities_from_account(account)
    for record in staged.writes():
        accounts.add_security(record)

    updated = transaction.with_status(
        AllocationStatus.SUCCESSFUL,
        TransactionStatus.COMPLETED,
        conversion_rate=json.dumps(rates.as_payload(), separators=(",", ":")),
    )
    deals.update_transaction(updated)
    _LOG.info(
        "settled %d allocations into %s",
        len(staged.allocated),
        staged.destination_account,
        extra={"transaction_id": transaction.transaction_id, "account": staged.destination_account},
    )
    return updated


def apply_pending(transaction: Transaction, *, deals: DealStore) -> Transaction:
    """Insufficient collateral: status only, no holdings touched."""
    updated = transaction.with_status(
        AllocationStatus.PENDING_INSUFFICIENT,
        TransactionStatus.MATCHED,
        conversion_rate="",
    )
    deals.update_transaction(updated)
    _LOG.info(
        "transaction pending due to insufficient collateral",
        extra={"transaction_id": transaction.transaction_id},
    )
    return updated


def build_report(
    staged: StagedSettlement,
    transaction: Transaction,
    *,
    rqv: Decimal,
    margin_call_date: str,
    public_ruleset: Ruleset,
    private_ruleset: Ruleset,
    rates: RateTable,
) -> SettlementReport:
    return SettlementReport(
        deal_id=transaction.deal_id,
        transaction_id=transaction.transaction_id,
        margin_call_date=margin_call_date,
        pledger=transaction.pledger,
        pledgee=transaction.pledgee,
        pledger_longbox_account=staged.source_account,
        pledgee_segregated_account=staged.destination_account,
        rqv=format_amount(rqv),
        currency=transaction.currency,
        public_ruleset=public_ruleset.as_payload(),
        private_ruleset=private_ruleset.as_payload(),
        currency_conversion_rate=rates.as_payload(),
        pledger_longbox_securities=[rec.as_payload() for rec in staged.source_holdings],
        pledgee_segregated_securities=[
            rec.as_payload() for rec in staged.destination_holdings + staged.allocated
        ],
        allocation_date=margin_call_date,
    )
