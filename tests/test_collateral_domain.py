from decimal import Decimal

import pytest

from collateral_domain import (AllocationStatus, RateTable, Ruleset, Security,
                               Transaction, TransactionStatus)
from collateral_domain.amounts import (ceil_units, format_amount,
                                       parse_decimal)


@pytest.mark.parametrize(
    "raw,expected",
    [("300", Decimal("300")), (" 12.5 ", Decimal("12.5")), (0.93006, Decimal("0.93006")), (7, Decimal(7))],
)
def test_parse_decimal_accepts(raw, expected):
    assert parse_decimal(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", None, "NaN", "Infinity"])
def test_parse_decimal_rejects(raw):
    with pytest.raises(ValueError):
        parse_decimal(raw, field="RQV")


def test_format_and_ceil():
    assert format_amount(Decimal("300")) == "300.00"
    assert format_amount(Decimal("0.005")) == "0.01"
    assert ceil_units(Decimal("5.0001")) == Decimal(6)
    assert ceil_units(Decimal("6")) == Decimal(6)


def test_ruleset_wire_format_and_entries():
    ruleset = Ruleset.model_validate(
        {
            "Security": {"Common Stocks": [35, 1, 95], "Gilt": [25, 7]},
            "BaseCurrency": "USD",
            "EligibleCurrency": ["USD", "EUR"],
        }
    )
    entry = ruleset.entry("Common Stocks")
    assert entry.concentration_limit == Decimal(35)
    assert entry.priority == Decimal(1)
    assert entry.valuation_pct == Decimal(95)
    # short entries do not count as present
    assert ruleset.entry("Gilt") is None
    assert ruleset.classes() == ["Common Stocks"]
    with pytest.raises(KeyError):
        ruleset.priority("Gilt")
    assert ruleset.as_payload()["BaseCurrency"] == "USD"


def test_rate_table_same_currency_is_one():
    table = RateTable(base="USD", rates={"USD": 3.0, "EUR": 0.8})
    assert table.rate_for("USD", "USD") == Decimal(1)
    assert table.rate_for("EUR", "USD") == Decimal("0.8")
    with pytest.raises(KeyError):
        table.rate_for("JPY", "USD")


def test_transaction_with_status_keeps_other_fields():
    txn = Transaction.model_validate(
        {
            "transactionId": "T1",
            "dealId": "D1",
            "pledger": "A",
            "pledgee": "B",
            "rqv": "100",
            "currency": "USD",
            "currencyConversionRate": "{}",
        }
    )
    updated = txn.with_status(AllocationStatus.FAILED, TransactionStatus.FAILED)
    assert updated.allocation_status == "Allocation Failed"
    assert updated.transaction_status == "Failed"
    assert updated.currency_conversion_rate == "{}"
    assert txn.allocation_status == ""


def test_security_payload_uses_wire_names():
    sec = Security(security_id="S1", account_number="ACC", collateral_form="Gilt")
    payload = sec.as_payload()
    assert payload["securityId"] == "S1"
    assert payload["collateralForm"] == "Gilt"
    assert payload["securityQuantity"] == "0"
