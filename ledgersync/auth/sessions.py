"""
Session registry: refresh-session records keyed by opaque token.

Persistence is <data_dir>/sessions.json, {"sessions": {token: {...}}}.
Each read-modify-write holds lock:store:sessions. Per-user invariants
(device cap, rotation races) are the caller's business and are protected
by the per-user auth lock taken in AuthService.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Generator, List, Optional

from ..core.locks import LockManager, lock_key_store
from ..core.storage import atomic_write, read_json
from ..utils.exceptions import StorageError
from ..utils.logger import get_logger
from .models import Session

logger = get_logger(__name__)

MAX_SESSIONS_PER_USER = 5


class SessionRegistry:
    def __init__(self, data_dir: Path, locks: LockManager):
        self.sessions_path = Path(data_dir) / "sessions.json"
        self.locks = locks

    def _load(self) -> Dict[str, Session]:
        raw = read_json(self.sessions_path)
        try:
            return {token: Session(**data) for token, data in raw.get("sessions", {}).items()}
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupt session record in {self.sessions_path}: {e}")

    def _save(self, sessions: Dict[str, Session]) -> None:
        payload = {
            "sessions": {token: s.model_dump(mode="json") for token, s in sessions.items()}
        }
        atomic_write(self.sessions_path, payload)

    @contextmanager
    def _mutate(self) -> Generator[Dict[str, Session], None, None]:
        """Load, let the caller edit the mapping in place, then persist."""
        with self.locks.acquire(lock_key_store("sessions")):
            sessions = self._load()
            yield sessions
            self._save(sessions)

    def find_by_token(self, token: str) -> Optional[Session]:
        if not token:
            return None
        return self._load().get(token)

    def find_by_user(self, user_id: str) -> List[Session]:
        return [s for s in self._load().values() if s.user_id == user_id]

    def save(self, session: Session) -> Session:
        with self._mutate() as sessions:
            sessions[session.token] = session
        return session

    def rotate(self, old_token: str, new_token: str, expires_at: datetime) -> Optional[Session]:
        """Swap a session's token value and expiry. None if old_token is gone."""
        with self._mutate() as sessions:
            current = sessions.pop(old_token, None)
            if current is None:
                return None
            rotated = current.model_copy(update={"token": new_token, "expires_at": expires_at})
            sessions[new_token] = rotated
        return rotated

    def delete_by_token(self, token: str) -> bool:
        if not token:
            return False
        with self._mutate() as sessions:
            return sessions.pop(token, None) is not None

    def delete_by_user(self, user_id: str) -> int:
        with self._mutate() as sessions:
            doomed = [t for t, s in sessions.items() if s.user_id == user_id]
            for token in doomed:
                del sessions[token]
        return len(doomed)

    def enforce_device_cap(
        self, user_id: str, now: datetime, limit: int = MAX_SESSIONS_PER_USER
    ) -> List[Session]:
        """
        Drop the user's expired sessions, then keep only the `limit` sessions
        expiring latest. Returns the evicted sessions.

        Ordering is by expiry, not by last use: a freshly rotated session has
        the furthest expiry and always survives.
        """
        with self._mutate() as sessions:
            mine = [s for s in sessions.values() if s.user_id == user_id]
            expired = [s for s in mine if s.is_expired(now)]
            live = [s for s in mine if not s.is_expired(now)]
            live.sort(key=lambda s: s.expires_at, reverse=True)
            evicted = expired + live[limit:]
            for s in evicted:
                del sessions[s.token]

        if evicted:
            logger.info(
                "Sessions evicted",
                user_id=user_id,
                expired=len(expired),
                over_cap=len(evicted) - len(expired),
            )
        return evicted
