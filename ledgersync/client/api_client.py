"""LedgerSync REST client for the desktop app"""

from typing import Any, Dict, Iterable, List, Optional, Union

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..sync.models import PullResult, PushSummary, SyncRecord
from ..utils.exceptions import ApiError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _to_wire(record: Union[SyncRecord, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(record, SyncRecord):
        return record.model_dump(
            mode="json", by_alias=True, exclude={"user_id", "updated_at"}, exclude_none=True
        )
    return dict(record)


class ApiClient:
    """
    Client for the LedgerSync server.

    Holds the access/refresh token pair after login. Bearer calls that come
    back 401 trigger one refresh-and-retry; if the refresh itself fails the
    tokens are dropped and the caller has to log in again.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[Any] = None,
        device_id: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        # Anything with requests.Session.request()'s signature works here.
        self.session = session or requests.Session()
        self.device_id = device_id
        self.timeout = timeout

        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.user_id: Optional[str] = None
        self.username: Optional[str] = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _send(self, method: str, path: str, json: Any = None, params: Optional[Dict] = None,
              headers: Optional[Dict[str, str]] = None):
        return self.session.request(
            method=method,
            url=f"{self.base_url}{path}",
            params=params,
            json=json,
            headers=headers,
            timeout=self.timeout,
        )

    @staticmethod
    def _body(response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def _request(self, method: str, path: str, json: Any = None, params: Optional[Dict] = None,
                 auth: bool = False, retry_on_401: bool = True) -> Any:
        headers = {}
        if auth:
            if not self.access_token:
                raise ApiError(401, "not_logged_in")
            headers["Authorization"] = f"Bearer {self.access_token}"

        response = self._send(method, path, json=json, params=params, headers=headers)

        if response.status_code == 401 and auth and retry_on_401 and self.refresh_token:
            logger.info("Access token rejected, refreshing", path=path)
            self.refresh()
            return self._request(method, path, json=json, params=params, auth=auth, retry_on_401=False)

        body = self._body(response)
        if response.status_code >= 400:
            reason = body.get("error") if isinstance(body, dict) else None
            logger.warning("LedgerSync request failed", path=path, status=response.status_code, reason=reason)
            raise ApiError(response.status_code, reason)
        return body

    # Auth

    def register(self, username: str, password: str, confirm_password: str) -> Dict[str, Any]:
        """Returns {"id", "username", "recoveryKey"}; the key is shown only once."""
        return self._request(
            "POST",
            "/auth/register",
            json={"username": username, "password": password, "confirmPassword": confirm_password},
        )

    def login(self, username: str, password: str) -> str:
        payload = {"username": username, "password": password}
        if self.device_id:
            payload["deviceId"] = self.device_id
        data = self._request("POST", "/auth/login", json=payload)
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        self.user_id = data["userId"]
        self.username = data["username"]
        return self.access_token

    def refresh(self) -> str:
        try:
            data = self._request("POST", "/auth/refresh", json={"refreshToken": self.refresh_token})
        except ApiError:
            self.access_token = None
            self.refresh_token = None
            raise
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        return self.access_token

    def logout(self) -> None:
        if self.refresh_token:
            self._request("POST", "/auth/logout", json={"refreshToken": self.refresh_token})
        self.access_token = None
        self.refresh_token = None

    def reset_password(self, username: str, recovery_key: str, new_password: str) -> None:
        self._request(
            "POST",
            "/auth/reset-password",
            json={"username": username, "recoveryKey": recovery_key, "newPassword": new_password},
        )

    def is_logged_in(self) -> bool:
        return bool(self.access_token)

    # Sync

    def pull(self, since_version: int = 0) -> PullResult:
        data = self._request("GET", "/sync", params={"last_version": since_version}, auth=True)
        return PullResult.model_validate(data)

    def push(self, records: Iterable[Union[SyncRecord, Dict[str, Any]]]) -> PushSummary:
        data = self._request("POST", "/sync", json=[_to_wire(r) for r in records], auth=True)
        return PushSummary.model_validate(data)

    def list_transactions(self) -> List[SyncRecord]:
        data = self._request("GET", "/sync/transactions", auth=True)
        return [SyncRecord.model_validate(item) for item in data]

    def upload_transactions(self, records: Iterable[Union[SyncRecord, Dict[str, Any]]]) -> List[SyncRecord]:
        data = self._request(
            "POST", "/sync/transactions/upload", json=[_to_wire(r) for r in records], auth=True
        )
        return [SyncRecord.model_validate(item) for item in data]
