import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from onetask.config import API_BASE_URL, SYNC_TIMEOUT_SECONDS
from onetask.schemas.user_schema import AccountUpdate, AuthResponse, UserEnvelope, UserRead
from onetask.schemas.workspace_schema import UserData

M = TypeVar("M", bound=BaseModel)


class RemoteSyncError(Exception):
    pass


class RemoteUnavailableError(RemoteSyncError):
    """Timeout, network failure, server error, or a body that is not the expected JSON."""


class RemoteRejectedError(RemoteSyncError):
    """The API answered with a 4xx and a message meant for the user."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _detail(body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get("detail", body.get("message"))
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return "Request rejected"


class RemoteClient:
    """Thin JSON client for the OneTask API with a short, fixed timeout."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self.token: Optional[str] = None
        self.logger = logging.getLogger("onetask.sync")

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -------------------------
    # Transport
    # -------------------------

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = self._client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            self.logger.warning("remote_timeout", extra={"method": method, "path": path})
            raise RemoteUnavailableError("Remote API timed out") from exc
        except httpx.HTTPError as exc:
            self.logger.warning("remote_unreachable", extra={"method": method, "path": path})
            raise RemoteUnavailableError("Remote API unreachable") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteUnavailableError("Remote API returned a non-JSON response") from exc

        if response.status_code >= 500:
            raise RemoteUnavailableError(f"Remote API failed with {response.status_code}")
        if response.status_code >= 400:
            raise RemoteRejectedError(_detail(body), response.status_code)
        return body

    def _parse(self, model: Type[M], body: Any) -> M:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            self.logger.warning("remote_bad_payload", extra={"model": model.__name__})
            raise RemoteUnavailableError("Remote API returned an unexpected response") from exc

    def _authenticated(self, body: Any) -> AuthResponse:
        auth = self._parse(AuthResponse, body)
        self.token = auth.access_token
        return auth

    # -------------------------
    # Accounts
    # -------------------------

    def create_account(self, name: str, email: str, password: str) -> AuthResponse:
        body = self._request("POST", "/api/users", json={"name": name, "email": email, "password": password})
        return self._authenticated(body)

    def authenticate(self, email: str, password: str) -> AuthResponse:
        body = self._request("POST", "/api/auth", json={"email": email, "password": password})
        return self._authenticated(body)

    def update_account(self, updates: AccountUpdate, current_password: Optional[str] = None) -> UserRead:
        payload = {"updates": updates.to_payload(), "currentPassword": current_password}
        body = self._request("PATCH", "/api/users/me", json=payload)
        return self._parse(UserEnvelope, body).user

    def delete_account(self, password: str) -> None:
        self._request("DELETE", "/api/users/me", json={"password": password})
        self.token = None

    # -------------------------
    # User data
    # -------------------------

    def fetch_user_data(self) -> UserData:
        return self._parse(UserData, self._request("GET", "/api/data"))

    def push_user_data(self, data: UserData) -> None:
        self._request("POST", "/api/data", json=data.to_document())
