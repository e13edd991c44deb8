"""
Auth helpers for the web layer.

require_user() is a FastAPI dependency that:
- Reads the access token from the Authorization: Bearer header
- Verifies it (signature + expiry) via the auth service
- Returns the authenticated user id
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from ledgersync.auth.service import AuthService
from ledgersync.sync.engine import SyncEngine
from ledgersync.utils.exceptions import AuthenticationFailure


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.services.auth


def get_sync_engine(request: Request) -> SyncEngine:
    return request.app.state.services.sync


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def require_user(request: Request) -> str:
    """
    Dependency for protected routes. Raises a 401 failure if the bearer
    token is missing, forged or expired.
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationFailure("Not authenticated")
    return get_auth_service(request).authenticate(token)
