"""Error taxonomy for calendar operations.

Each error carries the HTTP status the route layer answers with, so
controllers only need a single handler for the whole family.
"""

from __future__ import annotations

from typing import Optional


class CalendarError(Exception):
    """Base exception for calendar operations."""

    status_code = 500


class ClientInputError(CalendarError):
    """Raised when the caller supplied missing or malformed input."""

    status_code = 400


class AuthorizationError(CalendarError):
    """Raised when Google rejects the presented token or code."""

    status_code = 401


class TokenRefreshError(AuthorizationError):
    """Raised when an access token cannot be refreshed."""

    pass


class MissingRefreshTokenError(TokenRefreshError):
    """Raised when no refresh token is stored for the identity."""

    pass


class RefreshTokenRejectedError(TokenRefreshError):
    """Raised when Google rejects the refresh token (revoked or expired consent)."""

    pass


class UpstreamError(CalendarError):
    """Raised on network failures, provider errors and malformed payloads."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(UpstreamError):
    """Raised when the requested calendar resource does not exist."""

    status_code = 404


class StorageError(CalendarError):
    """Raised when the credential store cannot be read or written."""

    pass


__all__ = [
    "CalendarError",
    "ClientInputError",
    "AuthorizationError",
    "TokenRefreshError",
    "MissingRefreshTokenError",
    "RefreshTokenRejectedError",
    "UpstreamError",
    "NotFoundError",
    "StorageError",
]
