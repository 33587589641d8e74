"""HTTP surface of the allocation engine."""
from __future__ import annotations

import jwt
import pytest
from fastapi.testclient import TestClient

from allocation_engine.api import create_app, get_invoker
from allocation_engine.errors import CollaboratorError

AUTH = {"Authorization": "Bearer testtoken"}


class StubInvoker:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    async def invoke(self, function, args):
        self.calls.append((function, list(args)))
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture()
def stub():
    return StubInvoker(result={"transactionId": "T1", "message": "ok", "code": 200})


@pytest.fixture()
def client(stub):
    app = create_app()
    app.dependency_overrides[get_invoker] = lambda: stub
    return TestClient(app)


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_metrics_exposed(client):
    resp = client.get("/metrics/")
    assert resp.status_code == 200
    assert "allocation_runs_total" in resp.text


def test_requires_token(client):
    assert client.post("/allocation/start_allocation", json={"args": []}).status_code == 401
    bad = {"Authorization": "Bearer nope"}
    assert client.post("/allocation/start_allocation", json={"args": []}, headers=bad).status_code == 403


def test_jwt_accepted(client):
    token = jwt.encode({"sub": "ops"}, "testsecret", algorithm="HS256")
    resp = client.post(
        "/allocation/LongboxAccountUpdated",
        json={"args": ["deal", "LB1", "pledger", "1700000000"]},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 200


def test_invoke_passes_positional_args(client, stub):
    args = ["deal", "account", "host:1", "D1", "T1", "LB1", "SEG1", "1490000000"]
    resp = client.post("/allocation/start_allocation", json={"args": args}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {
        "function": "start_allocation",
        "accepted": True,
        "result": {"transactionId": "T1", "message": "ok", "code": 200},
    }
    assert stub.calls == [("start_allocation", args)]


def test_rejected_invocation_is_not_accepted(client, stub):
    stub.result = None
    resp = client.post("/allocation/start_allocation", json={"args": ["x"]}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json()["accepted"] is False


def test_unknown_function_is_404(client, stub):
    resp = client.post("/allocation/init", json={"args": []}, headers=AUTH)
    assert resp.status_code == 404
    assert stub.calls == [("init", [])]


def test_collaborator_failure_is_502(client, stub):
    stub.exc = CollaboratorError("ruleset: HTTP 500", transaction_id="T1")
    resp = client.post("/allocation/start_allocation", json={"args": []}, headers=AUTH)
    assert resp.status_code == 502
    assert resp.json()["detail"] == {"transactionId": "T1", "message": "ruleset: HTTP 500", "code": 503}
