"""
Per-user record store. One JSON document per user:

    <data_dir>/records/<user_id>.json = {"version": V, "records": {id: {...}}}

The whole document (counter + records) is replaced in one atomic move, so
readers see either the state before a push or the state after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from ..core.storage import atomic_write, read_json, safe_name
from ..utils.exceptions import StorageError
from .models import SyncRecord


@dataclass
class UserLedger:
    """A user's version counter and record set."""
    version: int = 0
    records: Dict[str, SyncRecord] = field(default_factory=dict)


class RecordStore:
    def __init__(self, data_dir: Path):
        self.records_dir = Path(data_dir) / "records"

    def _path(self, user_id: str) -> Path:
        return self.records_dir / f"{safe_name(user_id)}.json"

    def load(self, user_id: str) -> UserLedger:
        raw = read_json(self._path(user_id))
        if not raw:
            return UserLedger()
        try:
            records = {
                rid: SyncRecord.model_validate(data)
                for rid, data in raw.get("records", {}).items()
            }
            return UserLedger(version=int(raw.get("version", 0)), records=records)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupt record document for user {user_id}: {e}")

    def commit(self, user_id: str, ledger: UserLedger) -> None:
        payload = {
            "version": ledger.version,
            "records": {rid: r.to_json() for rid, r in ledger.records.items()},
        }
        atomic_write(self._path(user_id), payload)

    def find_by_user(self, user_id: str) -> List[SyncRecord]:
        return list(self.load(user_id).records.values())
