"""Positional entry points.

Functions take positional string arguments:

``start_allocation``
    dealStoreRef, accountStoreRef, rulesetApiHost, dealId, transactionId,
    sourceAccount, destinationAccount, marginCallTimestamp
``LongboxAccountUpdated``
    dealStoreRef, account, role, currentTimestamp

Store references resolve against a name registry; ``rulesetApiHost`` also
serves market data.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

from sqlmodel import Session

from common.audit import get_engine as get_audit_engine
from integrations.market_api.fx_client import FxRatesClient
from integrations.market_api.market_data_client import MarketDataClient
from integrations.market_api.ruleset_client import RulesetClient

from .config import EngineSettings
from .errors import ValidationError
from .notifications import (ERROR_EVENT, AuditJournalSink, FanoutSink,
                            LoggingSink, NotificationSink)
from .service import AllocationService, MarginSweeper
from .stores import (SqlAccountStore, SqlDealStore, init_db, make_engine,
                     session_factory)
from .stores.base import AccountStore, DealStore

__all__ = ["FUNCTIONS", "Invoker", "ProviderClients", "build_invoker", "default_clients"]

_LOG = logging.getLogger(__name__)

START_ALLOCATION = "start_allocation"
LONGBOX_ACCOUNT_UPDATED = "LongboxAccountUpdated"
FUNCTIONS = {START_ALLOCATION: 8, LONGBOX_ACCOUNT_UPDATED: 4}


@dataclass
class ProviderClients:
    rulesets: RulesetClient
    prices: MarketDataClient
    rates: FxRatesClient

    async def aclose(self) -> None:
        await self.rulesets.aclose()
        await self.prices.aclose()
        await self.rates.aclose()


def default_clients(host: str) -> ProviderClients:
    return ProviderClients(
        rulesets=RulesetClient(host=host),
        prices=MarketDataClient(host=host),
        rates=FxRatesClient(),
    )


def build_invoker(settings: Optional[EngineSettings] = None) -> "Invoker":
    """SQLModel-backed stores under the configured names; events go to the log and the audit journal."""
    settings = settings or EngineSettings.from_env()
    engine = make_engine(settings.database_url)
    init_db(engine)
    sessions = session_factory(engine)
    audit_engine = get_audit_engine()
    sink = FanoutSink(
        [
            LoggingSink(),
            AuditJournalSink(lambda: Session(audit_engine), service=settings.service_name),
        ]
    )
    return Invoker(
        deal_stores={settings.deal_store_name: SqlDealStore(sessions)},
        account_stores={settings.account_store_name: SqlAccountStore(sessions)},
        sink=sink,
        settings=settings,
    )


class Invoker:
    def __init__(
        self,
        *,
        deal_stores: Mapping[str, DealStore],
        account_stores: Mapping[str, AccountStore],
        sink: NotificationSink,
        settings: Optional[EngineSettings] = None,
        clients: Callable[[str], ProviderClients] = default_clients,
    ) -> None:
        self._deal_stores = dict(deal_stores)
        self._account_stores = dict(account_stores)
        self._sink = sink
        self._settings = settings or EngineSettings()
        self._clients = clients
        self._handlers: Dict[str, Callable[[Sequence[str]], Awaitable[Any]]] = {
            START_ALLOCATION: self._start_allocation,
            LONGBOX_ACCOUNT_UPDATED: self._longbox_account_updated,
        }

    async def invoke(self, function: str, args: Sequence[str]) -> Optional[Dict[str, Any]]:
        """Run *function*; returns the outcome payload, or None after a reported rejection."""
        try:
            handler = self._handlers.get(function)
            if handler is None:
                raise ValidationError("Received unknown function invocation")
            expected = FUNCTIONS[function]
            if len(args) != expected:
                raise ValidationError(f"Incorrect number of arguments. Expecting {expected}")
            return await handler([str(arg) for arg in args])
        except ValidationError as exc:
            _LOG.warning("%s rejected: %s", function, exc.message)
            self._sink.emit(ERROR_EVENT, exc.as_payload())
            return None

    def _deal_store(self, ref: str) -> DealStore:
        try:
            return self._deal_stores[ref]
        except KeyError:
            raise ValidationError(f"Unknown deal store {ref!r}") from None

    def _account_store(self, ref: str) -> AccountStore:
        try:
            return self._account_stores[ref]
        except KeyError:
            raise ValidationError(f"Unknown account store {ref!r}") from None

    async def _start_allocation(self, args: Sequence[str]) -> Optional[Dict[str, Any]]:
        deal_ref, account_ref, host, deal_id, txn_id, source, destination, margin_call = args
        deals = self._deal_store(deal_ref)
        accounts = self._account_store(account_ref)
        clients = self._clients(host)
        try:
            service = AllocationService(
                deals=deals,
                accounts=accounts,
                rulesets=clients.rulesets,
                prices=clients.prices,
                rates=clients.rates,
                sink=self._sink,
                settings=self._settings,
            )
            outcome = await service.start_allocation(
                deal_id=deal_id,
                transaction_id=txn_id,
                source_account=source,
                destination_account=destination,
                margin_call_timestamp=margin_call,
            )
        finally:
            await clients.aclose()
        return outcome.as_payload() if outcome else None

    async def _longbox_account_updated(self, args: Sequence[str]) -> Optional[Dict[str, Any]]:
        deal_ref, account, role, now = args
        sweeper = MarginSweeper(deals=self._deal_store(deal_ref), sink=self._sink, settings=self._settings)
        decisions = sweeper.longbox_account_updated(account=account, role=role, current_timestamp=now)
        if decisions is None:
            return None
        return {
            "account": account,
            "updated": [
                {
                    "transactionId": d.transaction.transaction_id,
                    "allocationStatus": d.allocation_status,
                    "changed": d.updated is not None,
                }
                for d in decisions
            ],
        }
