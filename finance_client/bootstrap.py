"""Composition root. Build one client at app start and pass it to the screens."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .auth_client import AuthClient
from .config import Settings, get_settings
from .credential_store import CredentialStore, RedisCredentialStore
from .executor import HttpRequestExecutor
from .finance_api import FinanceClient
from .session import SessionManager


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_client(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FinanceClient:
    s = settings or get_settings()
    if store is None:
        store = RedisCredentialStore(s.REDIS_HOST, s.REDIS_PORT, s.REDIS_DB, prefix=s.CREDENTIAL_KEY_PREFIX)

    auth = AuthClient(s.API_BASE_URL, s.HTTP_TIMEOUT_SEC, transport=transport)
    executor = HttpRequestExecutor(s.API_BASE_URL, s.HTTP_TIMEOUT_SEC, transport=transport)
    session = SessionManager(store, auth, executor)
    return FinanceClient(session, auth)


async def start_client(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FinanceClient:
    """Build the client and pick up whatever session survived the last run."""
    s = settings or get_settings()
    configure_logging(s.LOG_LEVEL)
    client = build_client(s, store, transport)
    await client.session.restore()
    return client
