"""
Result and error values returned by the session manager.

Intent:
    Public manager operations never raise for runtime failures. They return an
    `AuthResult(data, error)` pair, mirroring the `{data, error}` shape of the
    Supabase client, so UI code can render `error.message` inline.

Design:
    Errors subclass `Exception` so they carry a message and can be chained, but
    they are returned as values, not raised across the manager boundary.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional


class AuthError(Exception):
    """Base class for failures reported by the session manager."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoUserError(AuthError):
    """Operation requires an authenticated user."""

    def __init__(self, message: str = "No user") -> None:
        super().__init__(message)


class UsernameTakenError(AuthError):
    """Sign-up pre-check found an existing profile with the same username."""

    def __init__(self, message: str = "Username already taken") -> None:
        super().__init__(message)


class ProfileUpdateError(AuthError):
    """Profile update payload was rejected before reaching the database."""


class ProfileLoadFailed(AuthError):
    """Profile row for the current user could not be loaded.

    Attached to `AuthState.profile_error` instead of being returned to a caller.
    """

    def __init__(self, message: str, *, user_id: str) -> None:
        super().__init__(message)
        self.user_id = user_id


class AuthResult(NamedTuple):
    data: Any = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def error_message(exc: BaseException) -> str:
    """Return the human-readable message of a Supabase/postgrest exception."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


__all__ = [
    "AuthError",
    "NoUserError",
    "UsernameTakenError",
    "ProfileUpdateError",
    "ProfileLoadFailed",
    "AuthResult",
    "error_message",
]
