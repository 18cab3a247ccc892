from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from .errors import StorageError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)


class CredentialStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def remove_all(self, keys: Iterable[str]) -> None: ...

    async def close(self) -> None: ...


class RedisCredentialStore:
    """Durable token storage. Values are opaque strings, a missing key is None."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        prefix: str = "",
        client: Optional[redis.Redis] = None,
    ):
        self.r = client if client is not None else redis.Redis(host=host, port=port, db=db, decode_responses=True)
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.r.get(self._key(key))
        except RedisError as e:
            logger.error("Credential read failed. key=%s error=%s", key, e)
            raise StorageError(f"Could not read {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.r.set(self._key(key), value)
        except RedisError as e:
            logger.error("Credential write failed. key=%s error=%s", key, e)
            raise StorageError(f"Could not write {key!r}: {e}") from e

    async def remove(self, key: str) -> None:
        await self.remove_all([key])

    async def remove_all(self, keys: Iterable[str]) -> None:
        names = [self._key(k) for k in keys]
        if not names:
            return
        try:
            await self.r.delete(*names)
        except RedisError as e:
            logger.error("Credential delete failed. keys=%s error=%s", names, e)
            raise StorageError(f"Could not remove {names!r}: {e}") from e

    async def close(self) -> None:
        await self.r.aclose()


class MemoryCredentialStore:
    """Process-local store. Not durable; used in tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def remove_all(self, keys: Iterable[str]) -> None:
        for k in keys:
            self.data.pop(k, None)

    async def close(self) -> None:
        return None
