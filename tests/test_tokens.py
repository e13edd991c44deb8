import pytest

from ledgersync.auth.tokens import TokenService
from ledgersync.utils.exceptions import AccessTokenExpired, SignatureInvalid

KEY = "unit-test-signing-key-abcdef012345"


class Clock:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_issue_and_verify_returns_subject():
    tokens = TokenService(KEY)
    token = tokens.issue("user-1", 60)
    assert tokens.verify(token) == "user-1"


def test_expired_token_is_rejected():
    clock = Clock()
    tokens = TokenService(KEY, clock=clock)
    token = tokens.issue("user-1", 30 * 60)

    clock.t += 30 * 60
    assert tokens.verify(token) == "user-1"

    clock.t += 1
    with pytest.raises(AccessTokenExpired) as exc:
        tokens.verify(token)
    assert exc.value.reason == "token_expired"


def test_token_signed_with_other_key_is_rejected():
    token = TokenService("another-key-entirely-0000000000").issue("user-1", 60)
    with pytest.raises(SignatureInvalid) as exc:
        TokenService(KEY).verify(token)
    assert exc.value.reason == "invalid_token"


def test_tampered_token_is_rejected():
    tokens = TokenService(KEY)
    token = tokens.issue("user-1", 60)
    payload, _, sig = token.rpartition(".")
    forged = payload + "." + ("A" if sig[0] != "A" else "B") + sig[1:]
    with pytest.raises(SignatureInvalid):
        tokens.verify(forged)


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c"])
def test_garbage_is_rejected(garbage):
    with pytest.raises(SignatureInvalid):
        TokenService(KEY).verify(garbage)


def test_empty_key_is_refused():
    with pytest.raises(ValueError):
        TokenService("")
