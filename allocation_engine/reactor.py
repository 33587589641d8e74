"""Status Reactor: margin-call sweep after an account is replenished.

Transactions pending on insufficient collateral become ready when the margin
call is at most ``grace_hours`` old, and failed otherwise. Transactions
already ready are only re-notified. Allocation is never run from here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from collateral_domain import AllocationStatus, Transaction, TransactionStatus
from collateral_observability.metrics import margin_sweep_updates_total
from common.datetime import parse_timestamp

from .config import ParseFailurePolicy
from .errors import RecordParseError
from .notifications import SENDER_EVENT, NotificationSink, message_payload
from .stores.base import DealStore

__all__ = ["SweepDecision", "apply_sweep", "decide", "sweep"]

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepDecision:
    transaction: Transaction
    # None when the transaction is only re-notified
    updated: Optional[Transaction] = None

    @property
    def allocation_status(self) -> str:
        return (self.updated or self.transaction).allocation_status


def decide(transaction: Transaction, now: datetime, *, grace_hours: int = 24) -> Optional[SweepDecision]:
    if transaction.allocation_status == AllocationStatus.READY.value:
        return SweepDecision(transaction)
    if transaction.allocation_status != AllocationStatus.PENDING_INSUFFICIENT.value:
        return None

    try:
        margin_call = parse_timestamp(transaction.margin_call_date)
    except ValueError as exc:
        raise RecordParseError(
            f"marginCallDate: {exc}", transaction_id=transaction.transaction_id
        ) from exc
    elapsed = now - margin_call
    if timedelta(0) <= elapsed <= timedelta(hours=grace_hours):
        updated = transaction.with_status(AllocationStatus.READY, TransactionStatus.READY)
    else:
        updated = transaction.with_status(AllocationStatus.FAILED, TransactionStatus.FAILED)
    return SweepDecision(transaction, updated)


def sweep(
    transactions: Iterable[Transaction],
    now: datetime,
    *,
    grace_hours: int = 24,
    policy: ParseFailurePolicy = ParseFailurePolicy.ABORT,
) -> List[SweepDecision]:
    """Decide every transaction. Pure."""
    decisions: List[SweepDecision] = []
    for txn in transactions:
        try:
            decision = decide(txn, now, grace_hours=grace_hours)
        except RecordParseError as exc:
            if policy is ParseFailurePolicy.ABORT:
                raise
            _LOG.warning("skipping sweep: %s", exc.message, extra={"transaction_id": txn.transaction_id})
            continue
        if decision is not None:
            decisions.append(decision)
    return decisions


def apply_sweep(decisions: Iterable[SweepDecision], *, deals: DealStore, sink: NotificationSink) -> int:
    """Write each status change and notify; returns the number of writes."""
    written = 0
    for decision in decisions:
        txn_id = decision.transaction.transaction_id
        if decision.updated is not None:
            deals.update_transaction(decision.updated)
            margin_sweep_updates_total.labels(allocation_status=decision.allocation_status).inc()
            written += 1
            _LOG.info(
                "margin sweep: %s -> %s",
                txn_id,
                decision.allocation_status,
                extra={"transaction_id": txn_id},
            )
        sink.emit(
            SENDER_EVENT,
            message_payload(
                f"Transaction updated successfully with Allocation Status as {decision.allocation_status}",
                transaction_id=txn_id,
            ),
        )
    return written
