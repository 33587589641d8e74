import os
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Keep the audit journal out of the working directory
os.environ.setdefault("AUDIT_DB_URL", "sqlite:///:memory:")

from collateral_domain import Deal, RateTable, Ruleset, Security, Transaction  # noqa: E402
from common import secrets as secrets_module  # noqa: E402


# ---------------------------------------------------------------------------
# Default auth token for API tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _secrets() -> None:
    """Provide default secrets for tests via the secrets manager."""

    secrets_module.secrets.set_override(
        {"API_TOKENS": {"tester": "testtoken"}, "JWT_SECRET": "testsecret"}
    )
    yield
    secrets_module.secrets.set_override({})


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class MemoryDealStore:
    def __init__(self, deals=(), transactions=()):
        self.deals: Dict[str, Deal] = {d.deal_id: d for d in deals}
        self.transactions: Dict[str, Transaction] = {t.transaction_id: t for t in transactions}
        self.calls: List[Tuple[str, Any]] = []

    def get_deal_by_id(self, deal_id):
        return self.deals.get(deal_id)

    def get_transaction_by_id(self, transaction_id):
        return self.transactions.get(transaction_id)

    def update_transaction(self, transaction):
        self.calls.append(("update_transaction", transaction))
        self.transactions[transaction.transaction_id] = transaction

    def update_transaction_allocation_status(self, transaction_id, status):
        self.calls.append(("update_transaction_allocation_status", (transaction_id, status)))
        txn = self.transactions[transaction_id]
        self.transactions[transaction_id] = txn.model_copy(update={"allocation_status": status})

    def get_transactions_by_user(self, account, role):
        return [t for t in self.transactions.values() if getattr(t, role) == account]


class MemoryAccountStore:
    def __init__(self, holdings: Optional[Dict[str, List[Security]]] = None):
        self.holdings: Dict[str, List[Security]] = {k: list(v) for k, v in (holdings or {}).items()}
        self.calls: List[Tuple[str, Any]] = []

    def get_securities_by_account(self, account):
        return list(self.holdings.get(account, []))

    def add_security(self, security):
        self.calls.append(("add_security", security))
        self.holdings.setdefault(security.account_number, []).append(security)

    def remove_securities_from_account(self, account):
        self.calls.append(("remove_securities_from_account", account))
        self.holdings[account] = []


class FixedRulesets:
    def __init__(self, ruleset: Ruleset):
        self.ruleset = ruleset
        self.requests: List[Tuple[str, str]] = []

    async def get_private_ruleset(self, pledger, pledgee):
        self.requests.append((pledger, pledgee))
        return self.ruleset


class FixedPrices:
    def __init__(self, prices: Dict[str, str]):
        self.prices = {k: Decimal(v) for k, v in prices.items()}
        self.requests: List[str] = []

    async def get_price(self, security_id):
        self.requests.append(security_id)
        return self.prices[security_id]


class FixedRates:
    def __init__(self, table: RateTable):
        self.table = table

    async def get_rates(self, base_currency):
        return self.table


class RecordingSink:
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event_name, payload):
        self.events.append((event_name, payload))

    def named(self, event_name):
        return [payload for name, payload in self.events if name == event_name]


def make_security(security_id, account, form, quantity="10", currency="USD", **extra) -> Security:
    return Security(
        security_id=security_id,
        account_number=account,
        collateral_form=form,
        security_quantity=quantity,
        currency=currency,
        security_name=extra.pop("security_name", security_id),
        **extra,
    )


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def usd_rates() -> RateTable:
    return RateTable(base="USD", date="2017-03-20", rates={"EUR": 0.8, "GBP": 0.5})


@pytest.fixture()
def deal() -> Deal:
    return Deal(deal_id="D1", pledger="PledgerBank", pledgee="PledgeeBank")


@pytest.fixture()
def make_transaction():
    def _make(rqv="300", currency="USD", **extra) -> Transaction:
        fields = dict(
            transaction_id="T1",
            transaction_date="1490000000",
            deal_id="D1",
            pledger="PledgerBank",
            pledgee="PledgeeBank",
            rqv=rqv,
            currency=currency,
            margin_call_date="1490000000",
            allocation_status="",
            transaction_status="Pending",
        )
        fields.update(extra)
        return Transaction(**fields)

    return _make


@pytest.fixture()
def fakes():
    """Namespace of the in-memory collaborator classes."""

    class _Fakes:
        DealStore = MemoryDealStore
        AccountStore = MemoryAccountStore
        Rulesets = FixedRulesets
        Prices = FixedPrices
        Rates = FixedRates
        security = staticmethod(make_security)

    return _Fakes
