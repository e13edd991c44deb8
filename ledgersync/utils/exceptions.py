"""Custom exceptions for the LedgerSync server and client"""

from typing import Iterable, Optional


class LedgerSyncError(Exception):
    """Base exception for LedgerSync.

    Every subclass carries a machine-readable ``reason`` and the HTTP status
    the web edge answers with.
    """

    reason = "server_error"
    status_code = 500
    expose_reason = True

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        if reason is not None:
            self.reason = reason
        super().__init__(message or self.reason)


# Validation (400)

class ValidationFailure(LedgerSyncError):
    """Malformed or missing input"""
    reason = "invalid_input"
    status_code = 400


class InvalidInput(ValidationFailure):
    """Required field missing, blank or of the wrong shape"""
    pass


class PasswordMismatch(ValidationFailure):
    reason = "passwords_do_not_match"


class WeakPassword(ValidationFailure):
    """Password fails the length / letter+digit rule"""
    reason = "password_too_short"


class InvalidRecoveryKey(ValidationFailure):
    reason = "invalid_recovery_key"


class UserNotFound(ValidationFailure):
    """Unknown username on password reset (reported as 400, like other reset failures)"""
    reason = "user_not_found"


# Authentication (401)

class AuthenticationFailure(LedgerSyncError):
    reason = "invalid_token"
    status_code = 401


class InvalidCredentials(AuthenticationFailure):
    """Unknown username or wrong password. Deliberately indistinguishable."""
    reason = "invalid_credentials"
    expose_reason = False


class TokenNotFound(AuthenticationFailure):
    """Refresh token does not resolve to a live session"""
    reason = "invalid_token"


class TokenExpired(AuthenticationFailure):
    """Refresh session is past its expiry"""
    reason = "token_expired"


class UserGone(AuthenticationFailure):
    """Session points at a user that no longer exists"""
    reason = "user_gone"


class SignatureInvalid(AuthenticationFailure):
    """Access token seal does not verify"""
    reason = "invalid_token"


class AccessTokenExpired(AuthenticationFailure):
    reason = "token_expired"


# Conflict (409)

class ConflictFailure(LedgerSyncError):
    reason = "conflict"
    status_code = 409


class UsernameTaken(ConflictFailure):
    reason = "username_exists"


class SyncConflict(ConflictFailure):
    """Pushed records were based on a stale server version"""

    reason = "sync_conflict"

    def __init__(self, record_ids: Iterable[str]):
        self.record_ids = list(record_ids)
        super().__init__(f"Stale base version for records: {', '.join(self.record_ids)}")


# Not found (404)

class NotFound(LedgerSyncError):
    reason = "not_found"
    status_code = 404


# Internal (500)

class StorageError(LedgerSyncError):
    """Persistence read/write failure"""
    pass


class LockTimeout(StorageError):
    """Could not acquire a named lock within the configured timeout"""

    def __init__(self, key: str, timeout_seconds: float):
        self.key = key
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Could not acquire lock {key} within {timeout_seconds}s")


class ConfigError(LedgerSyncError):
    """Configuration error"""
    pass


# Client side

class ApiError(LedgerSyncError):
    """Non-2xx answer from the LedgerSync server"""

    def __init__(self, status_code: int, reason: Optional[str] = None):
        self.status_code = status_code
        super().__init__(f"Server answered {status_code} ({reason or 'no reason'})")
        self.reason = reason
