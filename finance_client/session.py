"""Authenticated request pipeline with single-flight token refresh.

Every request goes out with the current access token. When the backend answers
401, the request joins the refresh window: the first one to get there starts
the one refresh call, everyone else who fails while it runs waits in line. When
the refresh lands, waiters are released in the order they queued and each
retries exactly once with the new token. If it fails, every waiter gets
SessionExpired and the stored credentials are wiped.

The session (tokens in memory), the refresh state and the pending queue are
only touched while holding ``_lock``. Credential store writes happen under the
same lock, so nothing else can interleave a token write.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, List, Optional, Type

from .auth_client import TokenRefresher
from .credential_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, SESSION_KEYS, CredentialStore
from .errors import ApiError, NotAuthenticated, RefreshFailed, SessionExpired, StorageError
from .executor import AuthFailure, OtherError, RequestExecutor, RequestSpec, Result, Success
from .models import Session

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class PendingRequest:
    spec: RequestSpec
    # resolves to the new access token, or raises why there is none
    future: "asyncio.Future[str]"


class SessionManager:
    def __init__(self, store: CredentialStore, refresher: TokenRefresher, executor: RequestExecutor):
        self.store = store
        self.refresher = refresher
        self.executor = executor

        self._session = Session()
        self._state = RefreshState.IDLE
        self._pending: Deque[PendingRequest] = deque()
        self._refresh_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._session.access_token is not None

    @property
    def pending_count(self) -> int:
        return sum(1 for p in self._pending if not p.future.done())

    # lifecycle

    async def restore(self) -> bool:
        """Load persisted tokens into memory. Returns True if an access token was found."""
        async with self._lock:
            access = await self.store.get(ACCESS_TOKEN_KEY)
            refresh = await self.store.get(REFRESH_TOKEN_KEY)
            self._session = Session(access_token=access, refresh_token=refresh)
        logger.info("Session restored. authenticated=%s", access is not None)
        return access is not None

    async def login(self, access_token: str, refresh_token: str) -> None:
        async with self._lock:
            try:
                await self.store.set(ACCESS_TOKEN_KEY, access_token)
                await self.store.set(REFRESH_TOKEN_KEY, refresh_token)
            except StorageError:
                await self._write_back()
                raise
            waiting = self._reset()
            self._session = Session(access_token=access_token, refresh_token=refresh_token)
            # anyone parked on a refresh we just cancelled can use the fresh login
            self._release(waiting, access_token)
        logger.info("Logged in")

    async def logout(self) -> None:
        async with self._lock:
            waiting = self._reset()
            try:
                await self.store.remove_all(SESSION_KEYS)
            finally:
                self._fail(waiting, SessionExpired)
        logger.info("Logged out")

    # requests

    async def execute(self, spec: RequestSpec) -> Success:
        async with self._lock:
            token = self._session.access_token
        if token is None and spec.requires_auth:
            raise NotAuthenticated()

        result = await self.executor.send(spec, token)
        if not isinstance(result, AuthFailure):
            return self._unwrap(result)
        if token is None:
            raise NotAuthenticated()

        new_token = await self._fresh_token(spec, token)
        retried = await self.executor.send(spec, new_token)
        if isinstance(retried, AuthFailure):
            logger.warning("Request rejected again after refresh. method=%s path=%s", spec.method, spec.path)
            await self._expire(new_token)
            raise SessionExpired()
        return self._unwrap(retried)

    async def _fresh_token(self, spec: RequestSpec, failed_token: str) -> str:
        loop = asyncio.get_running_loop()
        async with self._lock:
            current = self._session.access_token
            if self._state is RefreshState.IDLE:
                if current is None:
                    raise SessionExpired()
                if current != failed_token:
                    # a refresh finished while this request was on the wire
                    return current

            pending = PendingRequest(spec, loop.create_future())
            self._pending.append(pending)
            if self._state is RefreshState.IDLE:
                self._state = RefreshState.REFRESHING
                self._refresh_task = asyncio.create_task(self._refresh(self._session.refresh_token))
        return await pending.future

    async def _refresh(self, refresh_token: Optional[str]) -> None:
        logger.info("Access token rejected, refreshing")
        try:
            if not refresh_token:
                raise RefreshFailed("No refresh token stored")
            access = await self.refresher.refresh(refresh_token)
        except RefreshFailed as e:
            logger.warning("Token refresh failed, ending session: %s", e)
            await self._refresh_failed(e)
            return
        except Exception as e:
            logger.exception("Token refresh crashed, ending session")
            await self._refresh_failed(e)
            return

        async with self._lock:
            waiting = self._settle()
            try:
                await self.store.set(ACCESS_TOKEN_KEY, access)
            except StorageError as e:
                self._fail(waiting, StorageError, e.message, cause=e)
                return
            self._session.access_token = access
            self._release(waiting, access)
        logger.info("Token refreshed. released=%d", len(waiting))

    async def _refresh_failed(self, cause: BaseException) -> None:
        async with self._lock:
            waiting = self._settle()
            self._session.clear()
            try:
                await self.store.remove_all(SESSION_KEYS)
            except StorageError:
                logger.exception("Could not clear stored credentials after failed refresh")
            self._fail(waiting, SessionExpired, cause=cause)

    async def _expire(self, token: str) -> None:
        async with self._lock:
            if self._session.access_token != token:
                # someone logged in again meanwhile
                return
            waiting = self._reset()
            try:
                await self.store.remove_all(SESSION_KEYS)
            finally:
                self._fail(waiting, SessionExpired)

    # helpers, all called with _lock held

    async def _write_back(self) -> None:
        """Put the store back in line with the in-memory pair after a partial write."""
        pairs = ((ACCESS_TOKEN_KEY, self._session.access_token), (REFRESH_TOKEN_KEY, self._session.refresh_token))
        try:
            for key, value in pairs:
                if value is None:
                    await self.store.remove(key)
                else:
                    await self.store.set(key, value)
        except StorageError:
            logger.exception("Could not roll back stored credentials")

    def _settle(self) -> List[PendingRequest]:
        self._state = RefreshState.IDLE
        self._refresh_task = None
        waiting = list(self._pending)
        self._pending.clear()
        return waiting

    def _reset(self) -> List[PendingRequest]:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
        self._session.clear()
        return self._settle()

    @staticmethod
    def _release(waiting: List[PendingRequest], token: str) -> None:
        for p in waiting:
            if not p.future.done():
                p.future.set_result(token)

    @staticmethod
    def _fail(
        waiting: List[PendingRequest],
        error: Type[BaseException],
        *args: Any,
        cause: Optional[BaseException] = None,
    ) -> None:
        # one exception instance per waiter
        for p in waiting:
            if not p.future.done():
                err = error(*args)
                err.__cause__ = cause
                p.future.set_exception(err)

    @staticmethod
    def _unwrap(result: Result) -> Success:
        if isinstance(result, OtherError):
            raise ApiError(result.status, result.detail)
        return result
