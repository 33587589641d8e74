import json
from decimal import Decimal

import pytest

from allocation_engine.eligibility import compute_eligibility
from allocation_engine.planner import plan_allocation
from allocation_engine.rulesets import PUBLIC_RULESET
from allocation_engine.settlement import (apply_pending, apply_settlement,
                                          build_report, stage_settlement)
from allocation_engine.valuation import valuate_accounts
from collateral_domain import Ruleset

RULESET = Ruleset.model_validate(
    {"Security": {"Common Stocks": [100, 1, 50]}, "BaseCurrency": "USD"}
)


async def _staged(fakes, rates, source, destination, rqv):
    valuation = await valuate_accounts(
        source,
        destination,
        ruleset=RULESET,
        rates=rates,
        rqv_currency="USD",
        prices=fakes.Prices({"S1": "100", "S2": "100", "S9": "100"}),
    )
    eligibility = compute_eligibility(Decimal(rqv), RULESET, valuation.securities)
    plan = plan_allocation(valuation.securities, eligibility, RULESET)
    return stage_settlement(
        source, destination, valuation, plan, source_account="LB1", destination_account="SEG1"
    )


@pytest.mark.asyncio
async def test_residuals_stay_in_original_accounts(fakes, usd_rates):
    source = [fakes.security("S1", "LB1", "Common Stocks", quantity="10"), fakes.security("X", "LB1", "Gilt")]
    destination = [fakes.security("S9", "SEG1", "Common Stocks", quantity="1")]

    staged = await _staged(fakes, usd_rates, source, destination, "300")

    # S1 (euv 50) is ranked first: 6 units cover 300
    assert [(s.security_id, s.security_quantity, s.total_value) for s in staged.source_holdings] == [
        ("S1", "4.00", "200.00"),
        ("X", "10", ""),
    ]
    assert [(s.security_id, s.security_quantity) for s in staged.destination_holdings] == [("S9", "1.00")]
    [new] = staged.allocated
    assert new.account_number == "SEG1"
    assert (new.security_id, new.security_quantity, new.total_value) == ("S1", "6.00", "300.00")
    assert new.effective_value_changed == "50.00"


@pytest.mark.asyncio
async def test_fully_taken_holdings_are_written_back_empty(fakes, usd_rates):
    source = [fakes.security("S1", "LB1", "Common Stocks", quantity="2")]
    staged = await _staged(fakes, usd_rates, source, [], "100")
    assert [(s.security_id, s.security_quantity, s.total_value) for s in staged.source_holdings] == [
        ("S1", "0.00", "0.00")
    ]
    assert [s.security_quantity for s in staged.allocated] == ["2.00"]


@pytest.mark.asyncio
async def test_apply_rewrites_accounts_then_completes_transaction(fakes, usd_rates, make_transaction):
    source = [fakes.security("S1", "LB1", "Common Stocks", quantity="10")]
    accounts = fakes.AccountStore({"LB1": source})
    txn = make_transaction(rqv="300")
    deals = fakes.DealStore(transactions=[txn])
    staged = await _staged(fakes, usd_rates, source, [], "300")

    updated = apply_settlement(staged, txn, usd_rates, accounts=accounts, deals=deals)

    ops = [name for name, _ in accounts.calls]
    assert ops == [
        "remove_securities_from_account",
        "remove_securities_from_account",
        "add_security",
        "add_security",
    ]
    assert [s.security_quantity for s in accounts.holdings["LB1"]] == ["4.00"]
    assert [s.security_quantity for s in accounts.holdings["SEG1"]] == ["6.00"]
    assert updated.allocation_status == "Allocation Successful"
    assert updated.transaction_status == "Completed"
    assert json.loads(updated.currency_conversion_rate)["base"] == "USD"
    assert deals.transactions["T1"] == updated

    report = build_report(
        staged,
        updated,
        rqv=Decimal("300"),
        margin_call_date="1490000000",
        public_ruleset=PUBLIC_RULESET,
        private_ruleset=RULESET,
        rates=usd_rates,
    ).as_payload()
    assert report["RQV"] == "300.00"
    assert report["allocationStatus"] == "Allocation Successful"
    assert report["allocationDate"] == "1490000000"
    assert report["privateRuleset"]["Security"] == {"Common Stocks": [100, 1, 50]}
    assert len(report["pledgeeSegregatedSecurities"]) == 1


def test_pending_touches_status_only(fakes, make_transaction):
    txn = make_transaction(rqv="1000", currency_conversion_rate='{"base":"USD"}')
    deals = fakes.DealStore(transactions=[txn])
    updated = apply_pending(txn, deals=deals)
    assert updated.allocation_status == "Pending due to insufficient collateral"
    assert updated.transaction_status == "Matched"
    assert updated.currency_conversion_rate == ""
