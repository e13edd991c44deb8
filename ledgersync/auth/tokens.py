"""
Access token signing and verification.

Access tokens are itsdangerous (HMAC) signed payloads:

    {"sub": <user id>, "iat": <issued at, epoch s>, "exp": <expiry, epoch s>}

They are verified structurally (seal + embedded expiry), never looked up,
so there is no revocation short of waiting out the TTL. Revocation lives at
the refresh-session layer.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict

from itsdangerous import BadSignature, URLSafeSerializer

from ..utils.exceptions import AccessTokenExpired, SignatureInvalid

ACCESS_TOKEN_SALT = "ledgersync-access-token"


class TokenService:
    """Stateless signer/verifier; the key is handed in at startup."""

    def __init__(self, signing_key: str, clock: Callable[[], float] = time.time):
        if not signing_key:
            raise ValueError("signing_key must not be empty")
        self._serializer = URLSafeSerializer(secret_key=signing_key, salt=ACCESS_TOKEN_SALT)
        self._clock = clock

    def issue(self, subject: str, ttl_seconds: int) -> str:
        now = int(self._clock())
        payload: Dict[str, Any] = {"sub": subject, "iat": now, "exp": now + int(ttl_seconds)}
        return self._serializer.dumps(payload)

    def verify(self, token: str) -> str:
        """Return the subject or raise SignatureInvalid / AccessTokenExpired."""
        if not token:
            raise SignatureInvalid("Missing access token")
        try:
            data = self._serializer.loads(token)
        except BadSignature:
            raise SignatureInvalid("Access token signature does not verify")

        if not isinstance(data, dict) or not isinstance(data.get("sub"), str):
            raise SignatureInvalid("Malformed access token payload")
        exp = data.get("exp")
        if not isinstance(exp, int):
            raise SignatureInvalid("Malformed access token payload")
        if self._clock() > exp:
            raise AccessTokenExpired("Access token expired")
        return data["sub"]
