from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from allocation_engine.errors import CollaboratorError
from allocation_engine.stores import (SqlAccountStore, SqlDealStore, init_db,
                                      make_engine, session_factory)
from allocation_engine.stores.db import TransactionRow
from collateral_domain import Deal


@pytest.fixture()
def sessions(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'allocation.db'}")
    init_db(engine)
    return session_factory(engine)


def test_deal_store_round_trip(sessions, make_transaction):
    store = SqlDealStore(sessions)
    store.put_deal(Deal(deal_id="D1", pledger="PledgerBank", pledgee="PledgeeBank"))
    store.put_transaction(make_transaction())

    assert store.get_deal_by_id("D1").pledgee == "PledgeeBank"
    assert store.get_deal_by_id("D2") is None
    txn = store.get_transaction_by_id("T1")
    assert txn.rqv == "300"

    store.update_transaction_allocation_status("T1", "Allocation in progress")
    assert store.get_transaction_by_id("T1").allocation_status == "Allocation in progress"

    store.update_transaction(txn.model_copy(update={"transaction_status": "Matched"}))
    latest = store.get_transaction_by_id("T1")
    assert latest.transaction_status == "Matched"
    assert latest.allocation_status == ""


def test_transactions_by_user_filters_on_role(sessions, make_transaction):
    store = SqlDealStore(sessions)
    store.put_transaction(make_transaction(transaction_id="T1", pledger="A", pledgee="B"))
    store.put_transaction(make_transaction(transaction_id="T2", pledger="B", pledgee="A"))

    assert [t.transaction_id for t in store.get_transactions_by_user("A", "pledger")] == ["T1"]
    assert [t.transaction_id for t in store.get_transactions_by_user("A", "Pledgee")] == ["T2"]
    with pytest.raises(ValueError):
        store.get_transactions_by_user("A", "custodian")


def test_update_of_unknown_transaction_fails(sessions, make_transaction):
    store = SqlDealStore(sessions)
    with pytest.raises(CollaboratorError):
        store.update_transaction(make_transaction(transaction_id="missing"))


def test_account_store_keeps_insertion_order_and_duplicates(sessions, fakes):
    store = SqlAccountStore(sessions)
    store.add_security(fakes.security("S1", "LB1", "Gilt", quantity="4"))
    store.add_security(fakes.security("S2", "LB1", "Gilt"))
    store.add_security(fakes.security("S1", "LB1", "Gilt", quantity="6"))
    store.add_security(fakes.security("S3", "SEG1", "Gilt"))

    held = store.get_securities_by_account("LB1")
    assert [(s.security_id, s.security_quantity) for s in held] == [("S1", "4"), ("S2", "10"), ("S1", "6")]

    store.remove_securities_from_account("LB1")
    assert store.get_securities_by_account("LB1") == []
    assert len(store.get_securities_by_account("SEG1")) == 1


def test_store_errors_surface_as_collaborator_errors(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    # tables never created
    store = SqlAccountStore(session_factory(engine))
    with pytest.raises(CollaboratorError) as info:
        store.get_securities_by_account("LB1")
    assert isinstance(info.value.__cause__, OperationalError)


def test_seeding_without_tables_surfaces_collaborator_error(tmp_path, make_transaction):
    store = SqlDealStore(session_factory(make_engine(f"sqlite:///{tmp_path / 'empty.db'}")))
    with pytest.raises(CollaboratorError):
        store.put_deal(Deal(deal_id="D1", pledger="A", pledgee="B"))
    with pytest.raises(CollaboratorError) as info:
        store.put_transaction(make_transaction())
    assert info.value.transaction_id == "T1"


def test_transaction_rows_stamp_aware_utc_times(sessions, make_transaction):
    row = TransactionRow.from_domain(make_transaction())
    assert row.updated_at.tzinfo is not None
    row.apply(make_transaction(rqv="400"))
    assert row.updated_at.utcoffset() == timedelta(0)

    store = SqlDealStore(sessions)
    store.put_transaction(make_transaction())
    store.update_transaction_allocation_status("T1", "Allocation in progress")
    store.update_transaction_allocation_status("T1", "Allocation Successful")
    assert store.get_transaction_by_id("T1").allocation_status == "Allocation Successful"
