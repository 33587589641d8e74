import datetime as _dt

import pytest

from allocation_engine.config import ParseFailurePolicy
from allocation_engine.errors import RecordParseError
from allocation_engine.notifications import SENDER_EVENT
from allocation_engine.reactor import apply_sweep, decide, sweep

MARGIN_CALL = 1_700_000_000
NOW_EXACT = _dt.datetime.fromtimestamp(MARGIN_CALL + 24 * 3600, tz=_dt.timezone.utc)


def _pending(make_transaction, **extra):
    fields = dict(
        allocation_status="Pending due to insufficient collateral",
        transaction_status="Matched",
        margin_call_date=str(MARGIN_CALL),
    )
    fields.update(extra)
    return make_transaction(**fields)


def test_exactly_24_hours_is_ready(make_transaction):
    decision = decide(_pending(make_transaction), NOW_EXACT)
    assert decision.updated.allocation_status == "Ready for Allocation"
    assert decision.updated.transaction_status == "Ready"


def test_one_second_past_24_hours_fails(make_transaction):
    decision = decide(_pending(make_transaction), NOW_EXACT + _dt.timedelta(seconds=1))
    assert decision.updated.allocation_status == "Allocation Failed"
    assert decision.updated.transaction_status == "Failed"


def test_margin_call_in_the_future_fails(make_transaction):
    decision = decide(_pending(make_transaction), NOW_EXACT - _dt.timedelta(hours=25))
    assert decision.updated.allocation_status == "Allocation Failed"


def test_iso_margin_call_dates_are_accepted(make_transaction):
    txn = _pending(make_transaction, margin_call_date="2023-11-14T22:13:20Z")
    assert decide(txn, NOW_EXACT).updated.allocation_status == "Ready for Allocation"


def test_ready_transactions_are_only_renotified(make_transaction):
    txn = make_transaction(allocation_status="Ready for Allocation", transaction_status="Ready")
    decision = decide(txn, NOW_EXACT)
    assert decision.updated is None
    assert decision.allocation_status == "Ready for Allocation"


def test_other_statuses_are_ignored(make_transaction):
    txn = make_transaction(allocation_status="Allocation Successful", transaction_status="Completed")
    assert decide(txn, NOW_EXACT) is None


def test_bad_margin_call_date_respects_policy(make_transaction):
    bad = _pending(make_transaction, margin_call_date="yesterday")
    with pytest.raises(RecordParseError):
        sweep([bad], NOW_EXACT)
    assert sweep([bad], NOW_EXACT, policy=ParseFailurePolicy.SKIP) == []


def test_apply_sweep_writes_and_notifies(fakes, sink, make_transaction):
    pending = _pending(make_transaction)
    ready = make_transaction(transaction_id="T2", allocation_status="Ready for Allocation")
    deals = fakes.DealStore(transactions=[pending, ready])

    decisions = sweep([pending, ready], NOW_EXACT)
    written = apply_sweep(decisions, deals=deals, sink=sink)

    assert written == 1
    assert deals.transactions["T1"].allocation_status == "Ready for Allocation"
    assert [call for call, _ in deals.calls] == ["update_transaction"]
    messages = sink.named(SENDER_EVENT)
    assert [m["transactionId"] for m in messages] == ["T1", "T2"]
    assert messages[0]["message"] == "Transaction updated successfully with Allocation Status as Ready for Allocation"
    assert messages[0]["code"] == 200
