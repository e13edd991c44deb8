"""
Sync models.

A SyncRecord is one financial transaction as the sync layer sees it: a
stable id, a server-assigned version stamp, a tombstone flag and whatever
business fields the client sends (amount, category, date, memo, ...),
which are carried through untouched.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Stamped by the server on push; whatever a client echoes back is dropped.
SERVER_OWNED_FIELDS = frozenset({"userId", "user_id", "updatedAt", "updated_at"})


class SyncRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    version: int = 0
    deleted: bool = False
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    # Client-observed server version; only read under the "reject" policy.
    base_version: Optional[int] = Field(default=None, alias="baseVersion")

    # Business fields are opaque: any JSON shape is stored and served back as sent.
    amount: Any = None
    category: Any = None
    date: Any = None
    memo: Any = None

    @classmethod
    def from_client(cls, data: Dict[str, Any]) -> "SyncRecord":
        """Validate a client-sent record, ignoring fields the server owns."""
        return cls.model_validate({k: v for k, v in data.items() if k not in SERVER_OWNED_FIELDS})

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"base_version"})


class PullResult(BaseModel):
    records: List[SyncRecord] = Field(default_factory=list)
    version: int


class AppliedRecord(BaseModel):
    id: str
    version: int


class PushSummary(BaseModel):
    version: int
    applied: List[AppliedRecord] = Field(default_factory=list)
