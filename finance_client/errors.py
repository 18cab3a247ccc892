"""Errors raised by the finance client session layer."""

from __future__ import annotations

from typing import Any, Optional


class FinanceClientError(Exception):
    """Base class for everything this package raises."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class NotAuthenticated(FinanceClientError):
    """No access token is present and the request requires one."""

    def __init__(self, message: str = "Not authenticated. Log in first.") -> None:
        super().__init__(message)


class SessionExpired(FinanceClientError):
    """The session is over. The caller must route the user back to login."""

    def __init__(self, message: str = "Session expired. Log in again.") -> None:
        super().__init__(message)


class RefreshFailed(FinanceClientError):
    """The refresh token could not be exchanged for a new access token.

    Only the session manager sees this one; callers get SessionExpired.
    """


class StorageError(FinanceClientError):
    """The credential store could not read or write a token."""


class ApiError(FinanceClientError):
    """Any non-authorization failure, passed through with the backend detail.

    ``status`` is None when the request never got an HTTP response
    (connection refused, timeout).
    """

    def __init__(self, status: Optional[int], detail: Any) -> None:
        super().__init__(f"API request failed (status={status}): {detail}")
        self.status = status
        self.detail = detail


class InvalidCredentials(ApiError):
    """Login was rejected by the backend."""
