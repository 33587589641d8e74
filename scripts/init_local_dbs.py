#!/usr/bin/env python
"""Initialize the local SQLite databases used in developer-mode.

Creates the deal/account store tables (``ALLOCATION_DB_URL``) and the audit
journal (``AUDIT_DB_URL``). With ``--demo`` it also seeds one deal, one
transaction and a few holdings priced by ``mocks.mock_market_api``. Safe to
run multiple times (table creation is idempotent).
"""
from __future__ import annotations

import argparse

from allocation_engine.config import EngineSettings
from allocation_engine.stores import (SqlAccountStore, SqlDealStore, init_db,
                                      make_engine, session_factory)
from collateral_domain import Deal, Security, Transaction
from common.audit import get_engine as get_audit_engine

_DEMO_HOLDINGS = [
    ("AAPL", "LB-PledgerBank", "Common Stocks", "40", "USD"),
    ("XS1234567890", "LB-PledgerBank", "Corporate Bonds", "100", "EUR"),
    ("GB00BDRHNP05", "LB-PledgerBank", "Gilt", "60", "GBP"),
    ("US912828U816", "SEG-PledgeeBank", "US Treasury Bills", "25", "USD"),
]


def seed_demo(deals: SqlDealStore, accounts: SqlAccountStore) -> None:
    deals.put_deal(Deal(deal_id="DEAL-1", pledger="PledgerBank", pledgee="PledgeeBank"))
    deals.put_transaction(
        Transaction(
            transaction_id="TXN-1",
            transaction_date="1490000000",
            deal_id="DEAL-1",
            pledger="PledgerBank",
            pledgee="PledgeeBank",
            rqv="10000",
            currency="USD",
            margin_call_date="1490000000",
            allocation_status="Ready for Allocation",
            transaction_status="Ready",
        )
    )
    for account in {h[1] for h in _DEMO_HOLDINGS}:
        accounts.remove_securities_from_account(account)
    for security_id, account, form, quantity, currency in _DEMO_HOLDINGS:
        accounts.add_security(
            Security(
                security_id=security_id,
                account_number=account,
                security_name=security_id,
                collateral_form=form,
                security_quantity=quantity,
                currency=currency,
            )
        )


def main() -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--demo", action="store_true", help="seed a demo deal, transaction and holdings")
    opts = parser.parse_args()

    settings = EngineSettings.from_env()
    engine = make_engine(settings.database_url)
    print(f"[init] {settings.database_url}")
    init_db(engine)
    print("[init] audit journal")
    get_audit_engine()
    if opts.demo:
        sessions = session_factory(engine)
        seed_demo(SqlDealStore(sessions), SqlAccountStore(sessions))
        print("[seed] DEAL-1 / TXN-1")
    print("\nSQLite databases initialised ✅")


if __name__ == "__main__":
    main()
