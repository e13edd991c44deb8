"""
Per-user and per-store named locks.

Keys: lock:user:{user_id}:auth, lock:user:{user_id}:sync, lock:store:sessions, ...
File-based (O_CREAT | O_EXCL lock files) so the same lock holds across
threads and uvicorn worker processes. Acquisition is always bounded.

Lock order: a user lock may be held while taking a store lock, never the
reverse. Locks are not re-entrant.
"""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from ..utils.exceptions import LockTimeout
from ..utils.logger import get_logger

logger = get_logger(__name__)

LOCK_TIMEOUT_SECONDS = 30
LOCK_POLL_INTERVAL = 0.05


class LockManager:
    """Hands out named locks rooted at one directory."""

    def __init__(self, locks_dir: Path, timeout_seconds: float = LOCK_TIMEOUT_SECONDS):
        self.locks_dir = Path(locks_dir)
        self.timeout_seconds = timeout_seconds

    def _lock_path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        return self.locks_dir / f"{safe}.lock"

    @contextmanager
    def acquire(self, key: str) -> Generator[None, None, None]:
        """Block until the named lock is held or raise LockTimeout."""
        path = self._lock_path(key)
        deadline = time.monotonic() + self.timeout_seconds
        while True:
            try:
                fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if time.monotonic() >= deadline:
                    logger.error("Lock acquisition timed out", key=key)
                    raise LockTimeout(key, self.timeout_seconds)
                time.sleep(LOCK_POLL_INTERVAL)
                continue
            try:
                os.write(fd, str(os.getpid()).encode())
            finally:
                os.close(fd)
            break

        try:
            yield
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass


def lock_key_auth(user_id: str) -> str:
    return f"lock:user:{user_id}:auth"


def lock_key_sync(user_id: str) -> str:
    return f"lock:user:{user_id}:sync"


def lock_key_store(name: str) -> str:
    return f"lock:store:{name}"
