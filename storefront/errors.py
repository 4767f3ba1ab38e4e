"""Exceptions raised by the session store and the repositories."""

from typing import Optional


class StorefrontError(Exception):
    """Base class for errors surfaced to API callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(StorefrontError):
    """Authentication or authorization failure.

    ``status`` mirrors HTTP semantics (401, 403, 409, ...) in mock mode
    as well as when a backing API is configured. It may be ``None`` when
    the failure has no natural status code.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    def __repr__(self) -> str:
        return f"AuthError(message={self.message!r}, status={self.status!r})"


class NotFoundError(StorefrontError):
    """Lookup against an identifier that does not exist."""
