from pathlib import Path

import pytest

from conftest import create_test_client


def _login(client, username="alice", password="pass123"):
    client.post(
        "/auth/register",
        json={"username": username, "password": password, "confirmPassword": password},
    )
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


@pytest.mark.parametrize(
    "method,path",
    [("get", "/sync"), ("post", "/sync"), ("get", "/sync/transactions"), ("post", "/sync/transactions/upload")],
)
def test_sync_requires_bearer(tmp_path: Path, method, path):
    client = create_test_client(tmp_path)
    kwargs = {"json": []} if method == "post" else {}

    res = getattr(client, method)(path, **kwargs)
    assert res.status_code == 401
    assert res.headers["WWW-Authenticate"] == "Bearer"

    res = getattr(client, method)(path, headers={"Authorization": "Bearer forged.token"}, **kwargs)
    assert res.status_code == 401
    assert res.json() == {"error": "invalid_token"}


def test_refresh_token_is_not_an_access_token(tmp_path: Path):
    client = create_test_client(tmp_path)
    tokens = _login(client)
    res = client.get("/sync", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
    assert res.status_code == 401


def test_end_to_end_scenario(tmp_path: Path):
    client = create_test_client(tmp_path)

    res = client.post(
        "/auth/register",
        json={"username": "alice", "password": "pass123", "confirmPassword": "pass123"},
    )
    recovery_key = res.json()["recoveryKey"]
    tokens = client.post("/auth/login", json={"username": "alice", "password": "pass123"}).json()

    res = client.post("/sync", json=[{"id": "t1", "amount": 10}], headers=_bearer(tokens))
    assert res.status_code == 200, res.text
    assert res.json() == {"version": 1, "applied": [{"id": "t1", "version": 1}]}

    res = client.get("/sync", params={"last_version": 0}, headers=_bearer(tokens))
    assert res.status_code == 200
    body = res.json()
    assert body["version"] == 1
    assert len(body["records"]) == 1
    record = body["records"][0]
    assert (record["id"], record["amount"], record["version"]) == ("t1", 10, 1)
    assert record["deleted"] is False
    assert record["userId"] == tokens["userId"]

    reset = {"username": "alice", "recoveryKey": recovery_key, "newPassword": "newpass9"}
    assert client.post("/auth/reset-password", json=reset).status_code == 200
    res = client.post("/auth/reset-password", json=reset)
    assert res.status_code == 400
    assert res.json() == {"error": "invalid_recovery_key"}


def test_pull_delta_and_tombstones(tmp_path: Path):
    client = create_test_client(tmp_path)
    headers = _bearer(_login(client))

    client.post("/sync", json=[{"id": "t1", "amount": 1}, {"id": "t2", "amount": 2}], headers=headers)
    client.post("/sync", json=[{"id": "t1", "deleted": True}], headers=headers)

    body = client.get("/sync", params={"last_version": 2}, headers=headers).json()
    assert body["version"] == 3
    assert [(r["id"], r["deleted"]) for r in body["records"]] == [("t1", True)]

    # Default watermark is 0
    body = client.get("/sync", headers=headers).json()
    assert sorted(r["id"] for r in body["records"]) == ["t1", "t2"]

    res = client.get("/sync", params={"last_version": -1}, headers=headers)
    assert res.status_code == 400


def test_push_validation(tmp_path: Path):
    client = create_test_client(tmp_path)
    headers = _bearer(_login(client))

    res = client.post("/sync", json={"id": "t1"}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"error": "invalid_input"}

    res = client.post("/sync", json=[{"amount": 1}], headers=headers)
    assert res.status_code == 400
    assert res.json() == {"error": "invalid_record"}

    res = client.post("/sync", json=[], headers=headers)
    assert res.json() == {"version": 0, "applied": []}


def test_client_shaped_records_round_trip(tmp_path: Path):
    client = create_test_client(tmp_path)
    headers = _bearer(_login(client))

    res = client.post(
        "/sync",
        json=[
            {
                "id": "t1",
                "amount": 10,
                "category": 7,
                "date": [2026, 1, 1],
                "updatedAt": [2026, 1, 1, 12, 0],
                "userId": "someone-else",
            }
        ],
        headers=headers,
    )
    assert res.status_code == 200, res.text

    record = client.get("/sync", headers=headers).json()["records"][0]
    assert record["category"] == 7
    assert record["date"] == [2026, 1, 1]
    assert record["userId"] != "someone-else"
    assert isinstance(record["updatedAt"], str)


def test_users_do_not_see_each_other(tmp_path: Path):
    client = create_test_client(tmp_path)
    alice = _bearer(_login(client, "alice"))
    bob = _bearer(_login(client, "bob"))

    client.post("/sync", json=[{"id": "t1", "amount": 10}], headers=alice)

    body = client.get("/sync", headers=bob).json()
    assert body == {"records": [], "version": 0}


def test_thin_client_endpoints_hide_tombstones(tmp_path: Path):
    client = create_test_client(tmp_path)
    headers = _bearer(_login(client))

    res = client.post(
        "/sync/transactions/upload",
        json=[{"id": "t1", "amount": 1}, {"id": "t2", "amount": 2}],
        headers=headers,
    )
    assert res.status_code == 200, res.text
    assert sorted(r["id"] for r in res.json()) == ["t1", "t2"]

    client.post("/sync", json=[{"id": "t2", "deleted": True}], headers=headers)

    res = client.get("/sync/transactions", headers=headers)
    assert res.status_code == 200
    assert [r["id"] for r in res.json()] == ["t1"]


def test_reject_policy_returns_conflicting_ids(tmp_path: Path):
    client = create_test_client(tmp_path, sync_conflict_policy="reject")
    headers = _bearer(_login(client))

    client.post("/sync", json=[{"id": "t1", "amount": 1}], headers=headers)
    client.post("/sync", json=[{"id": "t1", "amount": 2, "baseVersion": 1}], headers=headers)

    res = client.post("/sync", json=[{"id": "t1", "amount": 3, "baseVersion": 1}], headers=headers)
    assert res.status_code == 409
    assert res.json() == {"error": "sync_conflict", "records": ["t1"]}
