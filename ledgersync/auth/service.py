"""
Authentication service layer.

Composes the credential store, the session registry and the token service:
- Username/password users with bcrypt hashes and a single-use recovery key
- Dual tokens: short-lived signed access token + opaque refresh session
- Refresh sessions rotate on every use and are capped per user

Mutations for one user run under lock:user:{id}:auth; different users
never contend on it.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..core.locks import LockManager, lock_key_auth
from ..utils.exceptions import (
    InvalidCredentials,
    InvalidInput,
    InvalidRecoveryKey,
    PasswordMismatch,
    TokenExpired,
    TokenNotFound,
    UserGone,
    UsernameTaken,
    UserNotFound,
    WeakPassword,
)
from ..utils.logger import get_logger
from .credentials import CredentialStore, generate_recovery_key, hash_password, verify_password
from .models import (
    DEFAULT_DEVICE_ID,
    LoginResult,
    RefreshResult,
    RegisterResult,
    ResetPasswordResult,
    Session,
    User,
)
from .sessions import MAX_SESSIONS_PER_USER, SessionRegistry
from .tokens import TokenService

logger = get_logger(__name__)

ACCESS_TOKEN_TTL_SECONDS = 30 * 60
REFRESH_TOKEN_TTL_DAYS = 7
MIN_PASSWORD_LENGTH = 6

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"[0-9]")


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def check_password_strength(password: str) -> None:
    """At least 6 characters with at least one letter and one digit."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword("Password too short", reason="password_too_short")
    if not _LETTER.search(password) or not _DIGIT.search(password):
        raise WeakPassword(
            "Password must contain letters and numbers",
            reason="password_needs_letters_and_digits",
        )


def new_refresh_token() -> str:
    return secrets.token_urlsafe(32)


class AuthService:
    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionRegistry,
        tokens: TokenService,
        locks: LockManager,
        access_token_ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS,
        refresh_token_ttl_days: int = REFRESH_TOKEN_TTL_DAYS,
        max_sessions_per_user: int = MAX_SESSIONS_PER_USER,
        bcrypt_rounds: int = 12,
        revoke_sessions_on_reset: bool = False,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.tokens = tokens
        self.locks = locks
        self.access_token_ttl_seconds = access_token_ttl_seconds
        self.refresh_ttl = timedelta(days=refresh_token_ttl_days)
        self.max_sessions_per_user = max_sessions_per_user
        self.bcrypt_rounds = bcrypt_rounds
        self.revoke_sessions_on_reset = revoke_sessions_on_reset
        self.clock = clock
        self._dummy_hash: Optional[str] = None

    def _burn_password_check(self, password: str) -> None:
        # Unknown usernames still pay for one bcrypt check.
        if self._dummy_hash is None:
            self._dummy_hash = hash_password(secrets.token_hex(8), self.bcrypt_rounds)
        verify_password(password, self._dummy_hash)

    def register(
        self, username: Optional[str], password: Optional[str], confirm_password: Optional[str]
    ) -> RegisterResult:
        """
        Create a new user.

        The recovery key is returned here and nowhere else; the client must
        show it to the user once.
        """
        if _blank(username) or _blank(password):
            raise InvalidInput("Username and password are required")
        if password != confirm_password:
            raise PasswordMismatch("Passwords do not match")

        username = username.strip()
        if self.credentials.find_by_username(username) is not None:
            raise UsernameTaken(f"Username '{username}' already exists")
        check_password_strength(password)

        user = User(
            username=username,
            password_hash=hash_password(password, self.bcrypt_rounds),
            recovery_key=generate_recovery_key(),
            created_at=self.clock(),
        )
        # create() repeats the uniqueness check under the store lock.
        self.credentials.create(user)
        logger.info("User registered", user_id=user.id)
        return RegisterResult(id=user.id, username=user.username, recovery_key=user.recovery_key)

    def login(
        self, username: Optional[str], password: Optional[str], device_id: Optional[str] = None
    ) -> LoginResult:
        if _blank(username) or _blank(password):
            raise InvalidInput("Username and password are required")

        user = self.credentials.find_by_username(username.strip())
        if user is None:
            self._burn_password_check(password)
            raise InvalidCredentials("Invalid username or password")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid username or password")

        device = DEFAULT_DEVICE_ID if _blank(device_id) else device_id.strip()
        now = self.clock()
        session = Session(
            user_id=user.id,
            token=new_refresh_token(),
            device_id=device,
            created_at=now,
            expires_at=now + self.refresh_ttl,
        )
        with self.locks.acquire(lock_key_auth(user.id)):
            self.sessions.save(session)
            self.sessions.enforce_device_cap(user.id, now, self.max_sessions_per_user)

        logger.info("User logged in", user_id=user.id, device_id=device)
        return LoginResult(
            access_token=self.tokens.issue(user.id, self.access_token_ttl_seconds),
            refresh_token=session.token,
            user_id=user.id,
            username=user.username,
        )

    def refresh(self, refresh_token: Optional[str]) -> RefreshResult:
        """
        Exchange a refresh token for a new access/refresh pair.

        The presented token stops resolving as soon as this succeeds, so a
        copied old token is useless after the first legitimate refresh.
        """
        if _blank(refresh_token):
            raise InvalidInput("refreshToken is required")

        found = self.sessions.find_by_token(refresh_token)
        if found is None:
            raise TokenNotFound("Refresh token not recognised")

        user_id = found.user_id
        with self.locks.acquire(lock_key_auth(user_id)):
            # Re-read under the lock: a concurrent refresh may have rotated it.
            session = self.sessions.find_by_token(refresh_token)
            if session is None:
                raise TokenNotFound("Refresh token not recognised")

            now = self.clock()
            if session.is_expired(now):
                self.sessions.delete_by_token(refresh_token)
                logger.info("Expired refresh session removed", user_id=user_id)
                raise TokenExpired("Refresh token expired")

            if self.credentials.find_by_id(user_id) is None:
                self.sessions.delete_by_token(refresh_token)
                logger.warning("Refresh session for missing user removed", user_id=user_id)
                raise UserGone("User no longer exists")

            rotated = self.sessions.rotate(refresh_token, new_refresh_token(), now + self.refresh_ttl)
            if rotated is None:
                raise TokenNotFound("Refresh token not recognised")
            self.sessions.enforce_device_cap(user_id, now, self.max_sessions_per_user)

        logger.info("Refresh session rotated", user_id=user_id, device_id=rotated.device_id)
        return RefreshResult(
            access_token=self.tokens.issue(user_id, self.access_token_ttl_seconds),
            refresh_token=rotated.token,
        )

    def logout(self, refresh_token: Optional[str]) -> None:
        """Invalidate a refresh session (idempotent)."""
        if _blank(refresh_token):
            return
        if self.sessions.delete_by_token(refresh_token):
            logger.info("Refresh session logged out")

    def reset_password(
        self, username: Optional[str], recovery_key: Optional[str], new_password: Optional[str]
    ) -> ResetPasswordResult:
        """
        Reset a password with the recovery key.

        On success the recovery key is rotated; the old one never works again.
        """
        if username is None or recovery_key is None or new_password is None:
            raise InvalidInput("username, recoveryKey and newPassword are required")

        found = self.credentials.find_by_username(username.strip())
        if found is None:
            raise UserNotFound("User not found")

        with self.locks.acquire(lock_key_auth(found.id)):
            user = self.credentials.find_by_id(found.id)
            if user is None:
                raise UserNotFound("User not found")
            if not secrets.compare_digest(
                recovery_key.strip().encode("utf-8"), user.recovery_key.encode("utf-8")
            ):
                logger.warning("Password reset rejected", user_id=user.id)
                raise InvalidRecoveryKey("Recovery key does not match")
            check_password_strength(new_password)

            updated = user.model_copy(
                update={
                    "password_hash": hash_password(new_password, self.bcrypt_rounds),
                    "recovery_key": generate_recovery_key(),
                }
            )
            self.credentials.save(updated)

            revoked = 0
            if self.revoke_sessions_on_reset:
                revoked = self.sessions.delete_by_user(user.id)

        logger.info("Password reset", user_id=user.id, sessions_revoked=revoked)
        return ResetPasswordResult()

    def authenticate(self, access_token: Optional[str]) -> str:
        """Verify a bearer access token and return the user id."""
        return self.tokens.verify(access_token or "")
