"""
LedgerSync server configuration.

All values are loaded from environment variables (typically via .env):

- LEDGERSYNC_SIGNING_KEY            (required) HMAC key for access tokens
- LEDGERSYNC_DATA_DIR               JSON persistence root (default: data)
- LEDGERSYNC_ACCESS_TOKEN_TTL_SECONDS, LEDGERSYNC_REFRESH_TOKEN_TTL_DAYS
- LEDGERSYNC_MAX_SESSIONS_PER_USER
- LEDGERSYNC_BCRYPT_ROUNDS, LEDGERSYNC_LOCK_TIMEOUT_SECONDS
- LEDGERSYNC_REVOKE_SESSIONS_ON_RESET  (true/false)
- LEDGERSYNC_SYNC_CONFLICT_POLICY      (overwrite | reject)
- LEDGERSYNC_LOG_LEVEL, LEDGERSYNC_LOG_FORMAT, LEDGERSYNC_LOG_FILE
- CORS_ORIGINS, ENVIRONMENT
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ..utils.exceptions import ConfigError

ENV_PREFIX = "LEDGERSYNC_"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    """Process-wide configuration, injected into services at startup."""

    signing_key: str = Field(min_length=16)
    data_dir: Path = Path("data")
    access_token_ttl_seconds: int = Field(default=30 * 60, gt=0)
    refresh_token_ttl_days: int = Field(default=7, gt=0)
    max_sessions_per_user: int = Field(default=5, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    lock_timeout_seconds: float = Field(default=30.0, gt=0)
    revoke_sessions_on_reset: bool = False
    sync_conflict_policy: Literal["overwrite", "reject"] = "overwrite"
    environment: str = "development"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings() -> Settings:
    """Build Settings from the environment (.env is loaded first)."""
    load_dotenv()

    signing_key = _env("SIGNING_KEY")
    if not signing_key:
        raise ConfigError(
            "LEDGERSYNC_SIGNING_KEY must be set (at least 16 characters) to sign access tokens."
        )

    raw = {
        "signing_key": signing_key,
        "data_dir": _env("DATA_DIR"),
        "access_token_ttl_seconds": _env("ACCESS_TOKEN_TTL_SECONDS"),
        "refresh_token_ttl_days": _env("REFRESH_TOKEN_TTL_DAYS"),
        "max_sessions_per_user": _env("MAX_SESSIONS_PER_USER"),
        "bcrypt_rounds": _env("BCRYPT_ROUNDS"),
        "lock_timeout_seconds": _env("LOCK_TIMEOUT_SECONDS"),
        "revoke_sessions_on_reset": _env("REVOKE_SESSIONS_ON_RESET"),
        "sync_conflict_policy": _env("SYNC_CONFLICT_POLICY"),
        "environment": (os.getenv("ENVIRONMENT") or "").strip().lower() or None,
    }
    cors = os.getenv("CORS_ORIGINS")
    if cors:
        raw["cors_origins"] = [o.strip() for o in cors.split(",") if o.strip()]

    log_raw = {
        "level": _env("LOG_LEVEL"),
        "format": _env("LOG_FORMAT"),
        "file_path": _env("LOG_FILE"),
    }
    raw["logging"] = {k: v for k, v in log_raw.items() if v is not None}

    try:
        return Settings(**{k: v for k, v in raw.items() if v is not None})
    except ValidationError as e:
        raise ConfigError(f"Invalid LedgerSync configuration: {e}")
