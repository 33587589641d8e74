"""Allocation orchestration.

``AllocationService.start_allocation`` runs the resolvers, valuation,
eligibility gate, planner and settlement for one transaction.
``MarginSweeper.longbox_account_updated`` runs the Status Reactor.

Every terminal outcome emits exactly one notification. Validation failures
return ``None``; collaborator failures are re-raised after being reported.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from collateral_domain import AllocationStatus, Ruleset, Transaction
from collateral_domain.amounts import parse_decimal
from collateral_observability.metrics import (allocation_allocated_value,
                                              allocation_latency_seconds,
                                              allocation_runs_total)
from common.datetime import parse_timestamp
from integrations.market_api.http import MarketApiError

from .config import EngineSettings
from .eligibility import EligibilityResult, compute_eligibility
from .errors import (AllocationError, CollaboratorError, RecordParseError,
                     ValidationError)
from .notifications import (ERROR_EVENT, SENDER_EVENT, NotificationSink,
                            message_payload)
from .planner import AllocationPlan, plan_allocation
from .rates import RateProvider, resolve_rates
from .reactor import SweepDecision, apply_sweep, sweep
from .rulesets import PUBLIC_RULESET, RulesetProvider, resolve_private_ruleset
from .settlement import (SettlementReport, apply_pending, apply_settlement,
                         build_report, stage_settlement)
from .stores.base import ROLES, AccountStore, DealStore
from .valuation import PriceSource, valuate_accounts

__all__ = ["AllocationOutcome", "AllocationService", "MarginSweeper", "PENDING_MESSAGE"]

_LOG = logging.getLogger(__name__)

PENDING_MESSAGE = (
    "Transaction Allocation updated successfully with status 'Pending' due to insufficient collateral."
)

COMPLETED = "completed"
PENDING = "pending"


@dataclass
class AllocationOutcome:
    status: str
    transaction: Transaction
    eligibility: EligibilityResult
    plan: Optional[AllocationPlan] = None
    report: Optional[SettlementReport] = None

    def as_payload(self) -> dict:
        if self.report is not None:
            return self.report.as_payload()
        return message_payload(PENDING_MESSAGE, transaction_id=self.transaction.transaction_id)


class AllocationService:
    def __init__(
        self,
        *,
        deals: DealStore,
        accounts: AccountStore,
        rulesets: RulesetProvider,
        prices: PriceSource,
        rates: RateProvider,
        sink: NotificationSink,
        settings: Optional[EngineSettings] = None,
        public_ruleset: Ruleset = PUBLIC_RULESET,
    ) -> None:
        self._deals = deals
        self._accounts = accounts
        self._rulesets = rulesets
        self._prices = prices
        self._rates = rates
        self._sink = sink
        self._settings = settings or EngineSettings()
        self._public = public_ruleset

    async def start_allocation(
        self,
        *,
        deal_id: str,
        transaction_id: str,
        source_account: str,
        destination_account: str,
        margin_call_timestamp: str,
    ) -> Optional[AllocationOutcome]:
        with allocation_latency_seconds.time():
            try:
                outcome = await self._allocate(
                    deal_id=deal_id,
                    transaction_id=transaction_id,
                    source_account=source_account,
                    destination_account=destination_account,
                    margin_call_timestamp=margin_call_timestamp,
                )
            except ValidationError as exc:
                allocation_runs_total.labels(outcome="rejected").inc()
                _LOG.warning("allocation rejected: %s", exc.message, extra={"transaction_id": transaction_id})
                self._sink.emit(ERROR_EVENT, exc.as_payload())
                return None
            except MarketApiError as exc:
                err = CollaboratorError(str(exc), transaction_id=transaction_id)
                self._report_failure(err)
                raise err from exc
            except AllocationError as exc:
                if exc.transaction_id is None:
                    exc.transaction_id = transaction_id
                self._report_failure(exc)
                raise

        allocation_runs_total.labels(outcome=outcome.status).inc()
        self._sink.emit(SENDER_EVENT, outcome.as_payload())
        return outcome

    def _report_failure(self, exc: AllocationError) -> None:
        allocation_runs_total.labels(outcome="error").inc()
        _LOG.error(
            "allocation failed: %s",
            exc.message,
            extra={"transaction_id": exc.transaction_id},
        )
        self._sink.emit(ERROR_EVENT, exc.as_payload())

    async def _allocate(
        self,
        *,
        deal_id: str,
        transaction_id: str,
        source_account: str,
        destination_account: str,
        margin_call_timestamp: str,
    ) -> AllocationOutcome:
        deal = self._deals.get_deal_by_id(deal_id)
        if deal is None or deal.deal_id != deal_id:
            raise ValidationError(f"{deal_id} Not Found.")
        txn = self._deals.get_transaction_by_id(transaction_id)
        if txn is None or txn.transaction_id != transaction_id:
            raise ValidationError(f"{transaction_id} Not Found.")
        try:
            rqv = parse_decimal(txn.rqv, field="RQV")
        except ValueError as exc:
            raise RecordParseError(str(exc), transaction_id=transaction_id) from exc

        log_extra = {"deal_id": deal_id, "transaction_id": transaction_id}
        # not rolled back if a later step fails
        self._deals.update_transaction_allocation_status(
            transaction_id, AllocationStatus.IN_PROGRESS.value
        )
        _LOG.info("allocation in progress for RQV %s %s", rqv, txn.currency, extra=log_extra)

        resolved = await resolve_private_ruleset(
            self._rulesets,
            deal.pledger,
            deal.pledgee,
            sink=self._sink,
            transaction_id=transaction_id,
            public=self._public,
        )
        ruleset = resolved.accepted
        rates = await resolve_rates(self._rates, txn.currency)

        source = self._accounts.get_securities_by_account(source_account)
        destination = self._accounts.get_securities_by_account(destination_account)
        valuation = await valuate_accounts(
            source,
            destination,
            ruleset=ruleset,
            rates=rates,
            rqv_currency=txn.currency,
            prices=self._prices,
            policy=self._settings.parse_failure_policy,
            transaction_id=transaction_id,
        )

        eligibility = compute_eligibility(rqv, ruleset, valuation.securities)
        _LOG.debug(
            "eligible=%s available=%s total_eligible=%s",
            eligibility.eligible_value,
            eligibility.available_value,
            eligibility.total_eligible,
            extra=log_extra,
        )
        if not eligibility.sufficient:
            updated = apply_pending(txn, deals=self._deals)
            return AllocationOutcome(PENDING, updated, eligibility)

        plan = plan_allocation(valuation.securities, eligibility, ruleset)
        staged = stage_settlement(
            source,
            destination,
            valuation,
            plan,
            source_account=source_account,
            destination_account=destination_account,
        )
        updated = apply_settlement(staged, txn, rates, accounts=self._accounts, deals=self._deals)
        report = build_report(
            staged,
            updated,
            rqv=rqv,
            margin_call_date=margin_call_timestamp,
            public_ruleset=self._public,
            private_ruleset=ruleset,
            rates=rates,
        )
        allocation_allocated_value.labels(currency=txn.currency).set(float(plan.allocated_value))
        return AllocationOutcome(COMPLETED, updated, eligibility, plan, report)


class MarginSweeper:
    """Runs the Status Reactor for one replenished account."""

    def __init__(
        self,
        *,
        deals: DealStore,
        sink: NotificationSink,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self._deals = deals
        self._sink = sink
        self._settings = settings or EngineSettings()

    def longbox_account_updated(
        self, *, account: str, role: str, current_timestamp: str
    ) -> Optional[List[SweepDecision]]:
        try:
            if role.lower() not in ROLES:
                raise ValidationError(f"Unknown role {role!r}; expecting one of {', '.join(ROLES)}")
            try:
                now = parse_timestamp(current_timestamp)
            except ValueError as exc:
                raise ValidationError(f"Invalid timestamp {current_timestamp!r}") from exc
        except ValidationError as exc:
            self._sink.emit(ERROR_EVENT, exc.as_payload())
            return None

        try:
            transactions = self._deals.get_transactions_by_user(account, role.lower())
            decisions = sweep(
                transactions,
                now,
                grace_hours=self._settings.grace_hours,
                policy=self._settings.parse_failure_policy,
            )
            apply_sweep(decisions, deals=self._deals, sink=self._sink)
        except AllocationError as exc:
            _LOG.error("margin sweep failed: %s", exc.message, extra={"account": account})
            self._sink.emit(ERROR_EVENT, exc.as_payload())
            raise
        if not decisions:
            self._sink.emit(
                SENDER_EVENT, message_payload(f"No transactions awaiting allocation for account {account}.")
            )
        return decisions
