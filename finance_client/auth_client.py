from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional, Protocol

import httpx
from pydantic import ValidationError

from .errors import ApiError, InvalidCredentials, RefreshFailed
from .models import TokenPair

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh(self, refresh_token: str) -> str: ...


def _detail(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


class AuthClient:
    """Anonymous auth endpoints: login, register and the token refresh exchange.

    Nothing here touches stored credentials. Persisting what these calls
    return is the session manager's job.
    """

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout_sec
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.post(f"{self.base_url}/{path}", json=payload)

    async def refresh(self, refresh_token: str) -> str:
        try:
            r = await self._post("auth/refresh/", {"refresh": refresh_token})
        except httpx.HTTPError as e:
            raise RefreshFailed(f"Refresh request failed: {e}") from e

        if not r.is_success:
            raise RefreshFailed(f"Refresh rejected with status {r.status_code}")
        try:
            access = r.json().get("access")
        except (ValueError, AttributeError) as e:
            raise RefreshFailed("Refresh response is not a JSON object") from e
        if not access or not isinstance(access, str):
            raise RefreshFailed("Refresh response has no access token")
        return access

    async def login(self, username: str, password: str) -> TokenPair:
        try:
            r = await self._post("auth/login/", {"username": username, "password": password})
        except httpx.HTTPError as e:
            raise ApiError(None, str(e) or type(e).__name__) from e

        if r.status_code in (400, 401):
            raise InvalidCredentials(r.status_code, _detail(r))
        if not r.is_success:
            raise ApiError(r.status_code, _detail(r))
        try:
            return TokenPair.model_validate_json(r.content)
        except ValidationError as e:
            raise ApiError(r.status_code, "Login response is missing tokens") from e

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        user_type: Literal["PF", "PJ"] = "PF",
    ) -> Dict[str, Any]:
        payload = {"username": username, "email": email, "password": password, "user_type": user_type}
        try:
            r = await self._post("auth/register/", payload)
        except httpx.HTTPError as e:
            raise ApiError(None, str(e) or type(e).__name__) from e

        if not r.is_success:
            logger.info("Registration rejected. username=%s status=%s", username, r.status_code)
            raise ApiError(r.status_code, _detail(r))
        return _detail(r)
