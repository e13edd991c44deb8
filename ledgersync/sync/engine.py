"""
Sync Engine: incremental, version-watermarked reconciliation of a client's
record set with the server copy.

    pull(user, since)  -> every record stamped > since (tombstones included) + V
    push(user, batch)  -> each record gets V+1, V+2, ...; client copy wins

Each user has an independent counter V. Stamps are never reused and a
record's stamp is that of its last accepted write. A push is all or
nothing: it is applied to an in-memory copy and committed in one atomic
replace under lock:user:{id}:sync.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Union

from pydantic import ValidationError

from ..core.locks import LockManager, lock_key_sync
from ..utils.exceptions import InvalidInput, SyncConflict
from ..utils.logger import get_logger
from .models import AppliedRecord, PullResult, PushSummary, SyncRecord
from .store import RecordStore, UserLedger

logger = get_logger(__name__)

CONFLICT_POLICIES = ("overwrite", "reject")


class SyncEngine:
    """Per-user pull/push over a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        locks: LockManager,
        conflict_policy: str = "overwrite",
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        if conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(f"Unknown conflict policy: {conflict_policy}")
        self.store = store
        self.locks = locks
        self.conflict_policy = conflict_policy
        self.clock = clock

    def current_version(self, user_id: str) -> int:
        return self.store.load(user_id).version

    @staticmethod
    def _changes(ledger: UserLedger, since_version: int) -> Iterator[SyncRecord]:
        if since_version < 0:
            raise InvalidInput("last_version must be >= 0")
        for record in sorted(ledger.records.values(), key=lambda r: r.version):
            if record.version > since_version:
                yield record

    def iter_changes(self, user_id: str, since_version: int) -> Iterator[SyncRecord]:
        """Yield records changed after since_version, oldest stamp first."""
        yield from self._changes(self.store.load(user_id), since_version)

    def pull(self, user_id: str, since_version: int = 0) -> PullResult:
        """
        Delta since a watermark.

        The version in the result is read from the same snapshot as the
        records, so feeding it back as since_version never skips a write.
        """
        ledger = self.store.load(user_id)
        return PullResult(records=list(self._changes(ledger, since_version)), version=ledger.version)

    def snapshot(self, user_id: str) -> List[SyncRecord]:
        """Full current record set, tombstones included."""
        ledger = self.store.load(user_id)
        return sorted(ledger.records.values(), key=lambda r: r.version)

    def _coerce(self, incoming: Iterable[Union[SyncRecord, Dict[str, Any]]]) -> List[SyncRecord]:
        records = []
        for item in incoming:
            if isinstance(item, SyncRecord):
                record = item
            elif isinstance(item, dict):
                try:
                    record = SyncRecord.from_client(item)
                except ValidationError:
                    raise InvalidInput("Malformed sync record", reason="invalid_record")
            else:
                raise InvalidInput("Sync records must be objects", reason="invalid_record")
            if not record.id or not record.id.strip():
                raise InvalidInput("Sync record id is required", reason="invalid_record")
            records.append(record)
        return records

    def push(
        self, user_id: str, incoming: Iterable[Union[SyncRecord, Dict[str, Any]]]
    ) -> PushSummary:
        """Apply a batch of client records; the pushed copy always wins by default."""
        records = self._coerce(incoming)

        with self.locks.acquire(lock_key_sync(user_id)):
            ledger = self.store.load(user_id)
            if not records:
                return PushSummary(version=ledger.version)

            if self.conflict_policy == "reject":
                stale = [
                    r.id
                    for r in records
                    if r.base_version is not None
                    and r.id in ledger.records
                    and ledger.records[r.id].version > r.base_version
                ]
                if stale:
                    logger.warning("Push rejected on stale base version", user_id=user_id, records=stale)
                    raise SyncConflict(stale)

            now = self.clock()
            version = ledger.version
            applied = []
            inserted = 0
            for record in records:
                version += 1
                if record.id not in ledger.records:
                    inserted += 1
                ledger.records[record.id] = record.model_copy(
                    update={
                        "version": version,
                        "user_id": user_id,
                        "updated_at": now,
                        "base_version": None,
                    }
                )
                applied.append(AppliedRecord(id=record.id, version=version))
            ledger.version = version
            self.store.commit(user_id, ledger)

        logger.info(
            "Push applied",
            user_id=user_id,
            records=len(applied),
            inserted=inserted,
            version=version,
        )
        return PushSummary(version=version, applied=applied)
