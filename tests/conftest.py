"""Shared fakes for the session manager tests."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set, Tuple

import pytest

from finance_client.credential_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, MemoryCredentialStore
from finance_client.errors import RefreshFailed
from finance_client.executor import AuthFailure, OtherError, RequestSpec, Result, Success
from finance_client.session import SessionManager


class FakeExecutor:
    """Accepts a request when its token is in ``valid_tokens``; records every call."""

    def __init__(self, valid_tokens: Optional[Set[str]] = None) -> None:
        self.valid_tokens: Set[str] = set(valid_tokens or ())
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.errors: Dict[str, OtherError] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    async def send(self, spec: RequestSpec, access_token: Optional[str]) -> Result:
        self.calls.append((spec.path, access_token))
        gate = self.gates.get(spec.path)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if spec.path in self.errors:
            return self.errors[spec.path]
        if spec.requires_auth and access_token not in self.valid_tokens:
            return AuthFailure()
        return Success(200, {"path": spec.path, "token": access_token})

    def tokens_for(self, path: str) -> List[Optional[str]]:
        return [t for p, t in self.calls if p == path]


class FakeRefresher:
    def __init__(self, new_token: str = "access-2", fail: bool = False) -> None:
        self.new_token = new_token
        self.fail = fail
        self.error: Optional[Exception] = None
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def refresh(self, refresh_token: str) -> str:
        self.calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise RefreshFailed("refresh token rejected")
        return self.new_token


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore({ACCESS_TOKEN_KEY: "access-1", REFRESH_TOKEN_KEY: "refresh-1"})


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor(valid_tokens={"access-1"})


@pytest.fixture
def refresher() -> FakeRefresher:
    return FakeRefresher()


@pytest.fixture
async def manager(store: MemoryCredentialStore, refresher: FakeRefresher, executor: FakeExecutor) -> SessionManager:
    m = SessionManager(store, refresher, executor)
    await m.restore()
    return m


async def wait_for_pending(manager: SessionManager, count: int) -> None:
    for _ in range(1000):
        if manager.pending_count >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} pending requests, got {manager.pending_count}")
