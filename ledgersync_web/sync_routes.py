"""
FastAPI routes for transaction sync.

Prefix: /sync, bearer access token required on every route.

    GET  /sync?last_version=N           -> {"records": [...], "version": V}
    POST /sync  [records]               -> {"version": V, "applied": [{id, version}]}
    GET  /sync/transactions             -> live records (thin clients)
    POST /sync/transactions/upload      -> push, then live records (thin clients)
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from ledgersync.sync.engine import SyncEngine
from .auth_middleware import get_sync_engine, require_user

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("")
def pull(
    last_version: int = Query(default=0),
    user_id: str = Depends(require_user),
    engine: SyncEngine = Depends(get_sync_engine),
) -> JSONResponse:
    result = engine.pull(user_id, last_version)
    return JSONResponse(
        {"records": [r.to_json() for r in result.records], "version": result.version}
    )


@router.post("")
def push(
    records: List[Dict[str, Any]] = Body(...),
    user_id: str = Depends(require_user),
    engine: SyncEngine = Depends(get_sync_engine),
) -> JSONResponse:
    summary = engine.push(user_id, records)
    return JSONResponse(content=summary.model_dump())


def _live(engine: SyncEngine, user_id: str) -> List[Dict[str, Any]]:
    return [r.to_json() for r in engine.snapshot(user_id) if not r.deleted]


@router.get("/transactions")
def list_transactions(
    user_id: str = Depends(require_user),
    engine: SyncEngine = Depends(get_sync_engine),
) -> JSONResponse:
    """Current (non-deleted) records, for clients without delta tracking."""
    return JSONResponse(_live(engine, user_id))


@router.post("/transactions/upload")
def upload_transactions(
    records: List[Dict[str, Any]] = Body(...),
    user_id: str = Depends(require_user),
    engine: SyncEngine = Depends(get_sync_engine),
) -> JSONResponse:
    """Push a batch and re-serve the full current record set."""
    engine.push(user_id, records)
    return JSONResponse(_live(engine, user_id))
