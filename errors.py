"""Typed API errors. Every error carries status, body and message for the UI layer."""

from typing import Any


class ApiError(Exception):
    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={self.message!r})"


class CredentialError(ApiError):
    """401 on a call that must not refresh (login): bad username or password."""


class UnauthorizedError(ApiError):
    """401 on a protected call. Recovered by refresh-and-retry when possible."""


class SessionExpiredError(ApiError):
    """Refresh credential missing or refresh failed. Terminal until a new login."""

    login_url: str | None = None


class TransportError(ApiError):
    """Network failure or any non-401 error response."""
