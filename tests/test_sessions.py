from datetime import datetime, timedelta

import pytest

from ledgersync.auth.models import Session
from ledgersync.auth.sessions import SessionRegistry
from ledgersync.core.locks import LockManager

NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
def registry(tmp_path):
    return SessionRegistry(tmp_path, LockManager(tmp_path / "locks", timeout_seconds=5))


def _session(user_id: str, token: str, expires_in_hours: float, device: str = "unknown") -> Session:
    return Session(
        user_id=user_id,
        token=token,
        device_id=device,
        created_at=NOW,
        expires_at=NOW + timedelta(hours=expires_in_hours),
    )


def test_save_and_lookup(registry):
    registry.save(_session("u1", "tok-a", 1, device="laptop"))
    found = registry.find_by_token("tok-a")
    assert found.user_id == "u1"
    assert found.device_id == "laptop"
    assert registry.find_by_token("nope") is None
    assert registry.find_by_token("") is None
    assert [s.token for s in registry.find_by_user("u1")] == ["tok-a"]


def test_rotate_replaces_token(registry):
    original = registry.save(_session("u1", "old", 1))
    rotated = registry.rotate("old", "new", NOW + timedelta(days=7))

    assert rotated.id == original.id
    assert rotated.token == "new"
    assert registry.find_by_token("old") is None
    assert registry.find_by_token("new").expires_at == NOW + timedelta(days=7)
    assert registry.rotate("old", "newer", NOW) is None


def test_delete_by_token_is_idempotent(registry):
    registry.save(_session("u1", "tok", 1))
    assert registry.delete_by_token("tok")
    assert not registry.delete_by_token("tok")
    assert not registry.delete_by_token("")


def test_delete_by_user(registry):
    registry.save(_session("u1", "a", 1))
    registry.save(_session("u1", "b", 1))
    registry.save(_session("u2", "c", 1))
    assert registry.delete_by_user("u1") == 2
    assert registry.find_by_user("u1") == []
    assert registry.find_by_token("c") is not None


def test_device_cap_keeps_latest_expiring(registry):
    for i in range(7):
        registry.save(_session("u1", f"tok-{i}", expires_in_hours=i + 1))
    registry.save(_session("u2", "other", 1))

    evicted = registry.enforce_device_cap("u1", NOW, limit=5)

    assert sorted(s.token for s in evicted) == ["tok-0", "tok-1"]
    remaining = sorted(s.token for s in registry.find_by_user("u1"))
    assert remaining == ["tok-2", "tok-3", "tok-4", "tok-5", "tok-6"]
    assert registry.find_by_token("other") is not None


def test_device_cap_drops_expired_sessions(registry):
    registry.save(_session("u1", "stale", expires_in_hours=-1))
    registry.save(_session("u1", "live", expires_in_hours=1))

    evicted = registry.enforce_device_cap("u1", NOW, limit=5)

    assert [s.token for s in evicted] == ["stale"]
    assert [s.token for s in registry.find_by_user("u1")] == ["live"]


def test_device_cap_noop_under_limit(registry):
    for i in range(3):
        registry.save(_session("u1", f"tok-{i}", 1))
    assert registry.enforce_device_cap("u1", NOW, limit=5) == []
    assert len(registry.find_by_user("u1")) == 3
