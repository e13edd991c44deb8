"""
Wires stores and services from Settings.

Everything is constructed explicitly from configuration: no module-level
singletons, so tests can build as many isolated stacks as they like.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .auth.credentials import CredentialStore
from .auth.service import AuthService
from .auth.sessions import SessionRegistry
from .auth.tokens import TokenService
from .core.config import Settings
from .core.locks import LockManager
from .sync.engine import SyncEngine
from .sync.store import RecordStore


@dataclass
class Services:
    auth: AuthService
    sync: SyncEngine
    locks: LockManager


def build_services(settings: Settings, clock: Callable[[], datetime] = datetime.utcnow) -> Services:
    data_dir = settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    locks = LockManager(data_dir / "locks", timeout_seconds=settings.lock_timeout_seconds)

    auth = AuthService(
        credentials=CredentialStore(data_dir, locks),
        sessions=SessionRegistry(data_dir, locks),
        tokens=TokenService(settings.signing_key),
        locks=locks,
        access_token_ttl_seconds=settings.access_token_ttl_seconds,
        refresh_token_ttl_days=settings.refresh_token_ttl_days,
        max_sessions_per_user=settings.max_sessions_per_user,
        bcrypt_rounds=settings.bcrypt_rounds,
        revoke_sessions_on_reset=settings.revoke_sessions_on_reset,
        clock=clock,
    )
    sync = SyncEngine(
        store=RecordStore(data_dir),
        locks=locks,
        conflict_policy=settings.sync_conflict_policy,
        clock=clock,
    )
    return Services(auth=auth, sync=sync, locks=locks)
