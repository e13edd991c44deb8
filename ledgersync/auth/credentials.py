"""
Credential store with JSON-based persistence.

Holds user identity, bcrypt password hash and the single-use recovery key
in <data_dir>/users.json. Every read-modify-write runs under the
lock:store:users lock, which is what makes the username uniqueness check
serializable against concurrent registrations.
"""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import Dict, List, Optional

import bcrypt

from ..core.locks import LockManager, lock_key_store
from ..core.storage import atomic_write, read_json
from ..utils.exceptions import StorageError, UsernameTaken
from ..utils.logger import get_logger
from .models import User

logger = get_logger(__name__)

RECOVERY_KEY_LENGTH = 8


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_recovery_key() -> str:
    """8 random hex characters."""
    return secrets.token_hex(RECOVERY_KEY_LENGTH // 2)


class CredentialStore:
    """Keyed store of User records."""

    def __init__(self, data_dir: Path, locks: LockManager):
        self.users_path = Path(data_dir) / "users.json"
        self.locks = locks

    def _load(self) -> List[User]:
        raw = read_json(self.users_path)
        try:
            return [User(**item) for item in raw.get("users", [])]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupt user record in {self.users_path}: {e}")

    def _save(self, users: List[User]) -> None:
        payload: Dict = {"users": [u.model_dump(mode="json") for u in users]}
        atomic_write(self.users_path, payload)

    def find_by_id(self, user_id: str) -> Optional[User]:
        return next((u for u in self._load() if u.id == user_id), None)

    def find_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._load() if u.username == username), None)

    def create(self, user: User) -> User:
        """Insert a new user; raises UsernameTaken on a duplicate username."""
        with self.locks.acquire(lock_key_store("users")):
            users = self._load()
            if any(u.username == user.username for u in users):
                raise UsernameTaken(f"Username '{user.username}' already exists")
            users.append(user)
            self._save(users)
        logger.info("User created", user_id=user.id)
        return user

    def save(self, user: User) -> User:
        """Replace the stored record with the same id (insert if absent)."""
        with self.locks.acquire(lock_key_store("users")):
            users = self._load()
            for i, existing in enumerate(users):
                if existing.id == user.id:
                    users[i] = user
                    break
            else:
                users.append(user)
            self._save(users)
        return user

    def delete(self, user_id: str) -> bool:
        with self.locks.acquire(lock_key_store("users")):
            users = self._load()
            remaining = [u for u in users if u.id != user_id]
            if len(remaining) == len(users):
                return False
            self._save(remaining)
        logger.info("User deleted", user_id=user_id)
        return True
