import threading

import pytest

from ledgersync.auth.credentials import (
    CredentialStore,
    generate_recovery_key,
    hash_password,
    verify_password,
)
from ledgersync.auth.models import User
from ledgersync.core.locks import LockManager
from ledgersync.utils.exceptions import UsernameTaken


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path, LockManager(tmp_path / "locks", timeout_seconds=5))


def _user(username: str) -> User:
    return User(username=username, password_hash="x", recovery_key=generate_recovery_key())


def test_hash_and_verify():
    h = hash_password("pass123", rounds=4)
    assert h != "pass123"
    assert verify_password("pass123", h)
    assert not verify_password("pass124", h)
    assert not verify_password("pass123", "not-a-bcrypt-hash")


def test_recovery_key_shape():
    key = generate_recovery_key()
    assert len(key) == 8
    assert key != generate_recovery_key()


def test_create_and_find(store):
    user = store.create(_user("alice"))
    assert store.find_by_id(user.id).username == "alice"
    assert store.find_by_username("alice").id == user.id
    # Case-sensitive
    assert store.find_by_username("Alice") is None


def test_duplicate_username_rejected(store):
    store.create(_user("alice"))
    with pytest.raises(UsernameTaken):
        store.create(_user("alice"))
    store.create(_user("Alice"))


def test_save_replaces_record(store):
    user = store.create(_user("bob"))
    store.save(user.model_copy(update={"recovery_key": "deadbeef"}))
    assert store.find_by_id(user.id).recovery_key == "deadbeef"


def test_delete(store):
    user = store.create(_user("carol"))
    assert store.delete(user.id)
    assert store.find_by_id(user.id) is None
    assert not store.delete(user.id)


def test_concurrent_registrations_of_same_name(store):
    outcomes = []

    def attempt():
        try:
            store.create(_user("racer"))
            outcomes.append("ok")
        except UsernameTaken:
            outcomes.append("taken")

    threads = [threading.Thread(target=attempt) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("taken") == 5
