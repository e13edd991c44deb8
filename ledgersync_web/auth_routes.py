"""
FastAPI routes for authentication.

Prefix: /auth

Bodies are JSON with camelCase keys (the desktop client's wire format).
All business failures are raised as LedgerSyncError subclasses and turned
into status + {"error": reason} by the handlers in ledgersync_web.app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from ledgersync.auth.service import AuthService
from .auth_middleware import get_auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_Body):
    username: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class LoginRequest(_Body):
    username: Optional[str] = None
    password: Optional[str] = None
    device_id: Optional[str] = Field(default=None, alias="deviceId")


class RefreshRequest(_Body):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class ResetPasswordRequest(_Body):
    username: Optional[str] = None
    recovery_key: Optional[str] = Field(default=None, alias="recoveryKey")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


@router.post("/register")
def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """
    Register a new user.

    Response:
        {"id": "...", "username": "...", "recoveryKey": "..."}

    The recovery key is shown exactly once; the client must tell the user
    to keep it.
    """
    result = auth.register(body.username, body.password, body.confirm_password)
    return JSONResponse(content=result.model_dump(by_alias=True))


@router.post("/login")
def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """
    Log in and receive an access token plus a refresh token.

    Response:
        {"accessToken", "token", "refreshToken", "userId", "username"}

    "token" repeats the access token for older desktop clients.
    """
    result = auth.login(body.username, body.password, body.device_id)
    content = result.model_dump(by_alias=True)
    content["token"] = result.access_token
    return JSONResponse(content=content)


@router.post("/refresh")
def refresh(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Rotate the refresh token and mint a new access token."""
    result = auth.refresh(body.refresh_token)
    content = result.model_dump(by_alias=True)
    content["token"] = result.access_token
    return JSONResponse(content=content)


@router.post("/logout")
async def logout(request: Request, auth: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """
    Drop the refresh session. Always succeeds.

    The body is read by hand so that a malformed one still gets 200; it
    just logs nothing out.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    token = payload.get("refreshToken") if isinstance(payload, dict) else None
    if isinstance(token, str):
        await run_in_threadpool(auth.logout, token)
    return JSONResponse({"status": "success"})


@router.post("/reset-password")
def reset_password(
    body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    result = auth.reset_password(body.username, body.recovery_key, body.new_password)
    return JSONResponse(content=result.model_dump(by_alias=True))
