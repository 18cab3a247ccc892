from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestSpec:
    method: str
    path: str
    json: Optional[Any] = None
    params: Optional[dict] = None
    # False lets the call go out without a bearer header when no token is held
    requires_auth: bool = True


@dataclass(frozen=True)
class Success:
    status: int
    payload: Any


@dataclass(frozen=True)
class AuthFailure:
    status: int = 401


@dataclass(frozen=True)
class OtherError:
    status: Optional[int]
    detail: Any


Result = Union[Success, AuthFailure, OtherError]


class RequestExecutor(Protocol):
    async def send(self, spec: RequestSpec, access_token: Optional[str]) -> Result: ...


def _body(r: httpx.Response) -> Any:
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError:
        return r.text


class HttpRequestExecutor:
    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout_sec
        self.transport = transport

    def _headers(self, access: Optional[str]) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if access:
            headers["Authorization"] = f"Bearer {access}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(self, spec: RequestSpec, access_token: Optional[str] = None) -> Result:
        url = self._url(spec.path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.request(
                    spec.method,
                    url,
                    headers=self._headers(access_token),
                    params=spec.params,
                    json=spec.json,
                )
        except httpx.HTTPError as e:
            logger.warning("Request failed before a response. method=%s url=%s error=%s", spec.method, url, e)
            return OtherError(None, str(e) or type(e).__name__)

        if r.status_code == 401:
            return AuthFailure(r.status_code)
        data = _body(r)
        if r.is_success:
            return Success(r.status_code, data)
        return OtherError(r.status_code, data)
