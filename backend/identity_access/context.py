"""
Provider scope for the session manager.

Why:
    Components look up the active manager with `use_auth()` instead of
    importing a global. The host application opens one `auth_provider` scope
    around its lifetime; the scope starts the manager, subscribes it to auth
    notifications and tears the subscription down on exit.
"""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from backend.identity_access.session_manager import SessionManager


_ACTIVE: ContextVar[Optional[SessionManager]] = ContextVar("succms_active_session_manager", default=None)


@contextmanager
def auth_provider(manager: SessionManager) -> Iterator[SessionManager]:
    manager.start()
    token = _ACTIVE.set(manager)
    try:
        yield manager
    finally:
        _ACTIVE.reset(token)
        manager.close()


def use_auth() -> SessionManager:
    """Return the manager of the enclosing `auth_provider` scope.

    Raises RuntimeError when called outside a provider; this is a programming
    error, not a runtime condition callers should handle.
    """
    manager = _ACTIVE.get()
    if manager is None:
        raise RuntimeError("use_auth must be used within an auth_provider")
    return manager


__all__ = ["auth_provider", "use_auth"]
