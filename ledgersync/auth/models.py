"""
Auth models.

User and Session are persisted records (JSON under the data directory).
The *Result models are the closed set of responses the auth operations
return; the web edge serializes them with camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DEVICE_ID = "unknown"


class User(BaseModel):
    """User record. username is unique and case-sensitive."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    username: str
    password_hash: str
    recovery_key: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Session(BaseModel):
    """Refresh session record (opaque token, rotated on every refresh)."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    token: str
    device_id: str = DEFAULT_DEVICE_ID
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterResult(_ApiModel):
    id: str
    username: str
    recovery_key: str = Field(alias="recoveryKey")


class LoginResult(_ApiModel):
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    user_id: str = Field(alias="userId")
    username: str


class RefreshResult(_ApiModel):
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")


class ResetPasswordResult(_ApiModel):
    message: str = "password_reset_success"
