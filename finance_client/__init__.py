from .bootstrap import build_client, start_client
from .errors import (
    ApiError,
    FinanceClientError,
    InvalidCredentials,
    NotAuthenticated,
    SessionExpired,
    StorageError,
)
from .executor import RequestSpec
from .finance_api import FinanceClient
from .session import SessionManager

__all__ = [
    "ApiError",
    "FinanceClient",
    "FinanceClientError",
    "InvalidCredentials",
    "NotAuthenticated",
    "RequestSpec",
    "SessionExpired",
    "SessionManager",
    "StorageError",
    "build_client",
    "start_client",
]
