"""
Desktop-side replica of the user's transactions.

Keeps the local record set, the ids changed since the last sync and the
server watermark. sync() pushes local changes first (the client's copy wins
on the server) and then pulls everything stamped after the watermark.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from ..core.storage import atomic_write, read_json
from ..sync.models import SyncRecord
from ..utils.logger import get_logger
from .api_client import ApiClient

logger = get_logger(__name__)


class LocalReplica:
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self.records: Dict[str, SyncRecord] = {}
        self.pending: Set[str] = set()
        self.last_version = 0
        if self.path is not None:
            self._load()

    def _load(self) -> None:
        raw = read_json(self.path)
        self.last_version = int(raw.get("last_version", 0))
        self.pending = set(raw.get("pending", []))
        self.records = {
            rid: SyncRecord.model_validate(data) for rid, data in raw.get("records", {}).items()
        }

    def save(self) -> None:
        if self.path is None:
            return
        atomic_write(
            self.path,
            {
                "last_version": self.last_version,
                "pending": sorted(self.pending),
                "records": {
                    rid: r.model_dump(mode="json", by_alias=True) for rid, r in self.records.items()
                },
            },
        )

    def upsert(self, record: Union[SyncRecord, Dict[str, Any]]) -> SyncRecord:
        """Record a local add/edit; it is pushed on the next sync."""
        if not isinstance(record, SyncRecord):
            record = SyncRecord.from_client(record)
        known = self.records.get(record.id)
        base = known.version if known is not None and known.version else None
        record = record.model_copy(update={"base_version": base, "version": known.version if known else 0})
        self.records[record.id] = record
        self.pending.add(record.id)
        self.save()
        return record

    def delete(self, record_id: str) -> Optional[SyncRecord]:
        """Tombstone a record locally; the tombstone is pushed on the next sync."""
        known = self.records.get(record_id)
        if known is None:
            return None
        tombstone = known.model_copy(update={"deleted": True, "base_version": known.version or None})
        self.records[record_id] = tombstone
        self.pending.add(record_id)
        self.save()
        return tombstone

    def live(self) -> List[SyncRecord]:
        return [r for r in self.records.values() if not r.deleted]

    def sync(self, api: ApiClient) -> int:
        """Push pending changes, then pull the delta. Returns records pulled."""
        if self.pending:
            batch = [self.records[rid] for rid in sorted(self.pending) if rid in self.records]
            summary = api.push(batch)
            for applied in summary.applied:
                if applied.id in self.records:
                    self.records[applied.id] = self.records[applied.id].model_copy(
                        update={"version": applied.version, "base_version": None}
                    )
            self.pending.clear()
            logger.info("Local changes pushed", records=len(summary.applied), version=summary.version)

        result = api.pull(self.last_version)
        for record in result.records:
            self.records[record.id] = record
        self.last_version = result.version
        self.save()
        logger.info("Replica synced", pulled=len(result.records), version=self.last_version)
        return len(result.records)
