"""
Session/profile manager over Supabase auth.

Why:
    UI code needs one authoritative view of "who is signed in and what does
    their profile say". Supabase owns the truth; this manager mirrors it in
    memory and exposes sign-in/sign-up/sign-out and profile operations.

Design:
    - A single state machine (`AuthPhase`) driven by Supabase auth-state
      notifications. Direct call results (`sign_in`, `sign_up`) only report
      whether the request succeeded; they never touch state themselves.
    - `sign_out` is the one exception: it clears local state immediately so the
      UI returns to the login screen without waiting for the remote call.
    - Profile-load failures are attached to the state as `ProfileLoadFailed`
      instead of being dropped.
    - Public operations return `AuthResult(data, error)` and never raise.

Concurrency:
    The sync Supabase client may deliver TOKEN_REFRESHED from its refresh timer
    thread, so state transitions are serialized with an RLock. The lock is never
    held across network calls; a profile result for a user that is no longer
    current is discarded.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
import threading
from typing import Any, Callable, List, Mapping, Optional

from backend.identity_access.domain import ALLOWED_ROLES, PROFILE_UPDATE_FIELDS, UserProfile
from backend.identity_access.profiles import ProfileStore
from backend.identity_access.results import (
    AuthError,
    AuthResult,
    NoUserError,
    ProfileLoadFailed,
    ProfileUpdateError,
    UsernameTakenError,
    error_message,
)


logger = logging.getLogger("succms.identity_access")


class AuthPhase(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    PROFILE_LOADING = "profile_loading"
    READY = "ready"


@dataclass(frozen=True)
class AuthState:
    phase: AuthPhase = AuthPhase.ANONYMOUS
    user: Any = None
    session: Any = None
    profile: Optional[UserProfile] = None
    is_loading: bool = False
    profile_error: Optional[ProfileLoadFailed] = None


StateListener = Callable[[AuthState], None]


def _session_user(session: Any) -> Any:
    return getattr(session, "user", None) if session is not None else None


def _user_id(user: Any) -> Optional[str]:
    uid = getattr(user, "id", None)
    return str(uid) if uid is not None else None


class SessionManager:
    """Mirror of the Supabase session plus the current user's profile row.

    The manager is constructed and started by the host application
    (see `identity_access.context.auth_provider`); it is not a singleton.
    """

    def __init__(self, client: Any, *, profiles: ProfileStore | None = None) -> None:
        self._client = client
        self._profiles = profiles or ProfileStore(client)
        self._lock = threading.RLock()
        self._state = AuthState(phase=AuthPhase.AUTHENTICATING, is_loading=True)
        self._listeners: List[StateListener] = []
        self._subscription: Any = None
        self._started = False
        self._notified = False

    # --- State access -----------------------------------------------------------

    @property
    def state(self) -> AuthState:
        with self._lock:
            return self._state

    @property
    def user(self) -> Any:
        return self.state.user

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.state.profile

    @property
    def session(self) -> Any:
        return self.state.session

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for state changes; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def _set_state(self, new_state: AuthState) -> None:
        with self._lock:
            self._state = new_state
            listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("auth.listener_failed phase=%s", new_state.phase.value)

    # --- Lifecycle --------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to auth notifications, then restore an existing session.

        `is_loading` turns False only after the restore attempt (and, when a
        session exists, the first profile load) has finished. If a notification
        arrives while the restore is in flight, it wins and the restored
        session is not applied. Calling `start` twice is a no-op.
        """
        with self._lock:
            if self._started:
                return
            self._started = True
            self._notified = False
        logger.debug("auth.init")
        # Subscribe first so a notification arriving during restore is not lost.
        self._subscription = self._client.auth.on_auth_state_change(self._on_auth_state_change)
        try:
            session = self._client.auth.get_session()
        except Exception as exc:
            # Restore failure leaves the manager signed out.
            logger.error("auth.init_failed reason=%s", exc.__class__.__name__)
            session = None

        with self._lock:
            superseded = self._notified
        if superseded:
            # A notification already applied a newer session (or sign-out).
            logger.debug("auth.init_superseded")
        elif _session_user(session) is not None:
            self._apply_session(session)
        else:
            self._set_state(AuthState())
            return
        with self._lock:
            self._set_state(replace(self._state, is_loading=False))

    def close(self) -> None:
        """Unsubscribe from auth notifications. Safe to call repeatedly."""
        subscription, self._subscription = self._subscription, None
        with self._lock:
            self._started = False
        if subscription is not None:
            subscription.unsubscribe()
            logger.debug("auth.unsubscribed")

    def _on_auth_state_change(self, event: Any, session: Any) -> None:
        logger.debug("auth.state_changed event=%s", getattr(event, "value", event))
        with self._lock:
            self._notified = True
        if _session_user(session) is not None:
            self._apply_session(session)
        else:
            self._set_state(AuthState())

    def _apply_session(self, session: Any) -> None:
        user = _session_user(session)
        uid = _user_id(user)
        with self._lock:
            previous = self._state
            kept = previous.profile if previous.profile is not None and previous.profile.id == uid else None
            self._set_state(
                AuthState(
                    phase=AuthPhase.AUTHENTICATED,
                    user=user,
                    session=session,
                    profile=kept,
                    is_loading=previous.is_loading,
                )
            )
        if uid is not None:
            self._load_profile(uid)

    def _load_profile(self, uid: str) -> None:
        """Fetch the profile row for `uid` and move to READY.

        On failure the profile already held for this same user is kept and the
        error goes to `profile_error`; it is not reset to None. A different
        user never inherits a profile because `_apply_session` only carries it
        over when the ids match.
        """
        with self._lock:
            self._set_state(replace(self._state, phase=AuthPhase.PROFILE_LOADING))
        error: ProfileLoadFailed | None = None
        profile: UserProfile | None = None
        try:
            profile = self._profiles.fetch(uid)
        except Exception as exc:
            error = ProfileLoadFailed(error_message(exc), user_id=uid)
            logger.error("auth.profile_load_failed user_id=%s reason=%s", uid, error.message)

        with self._lock:
            current = self._state
            if _user_id(current.user) != uid:
                logger.info("auth.profile_load_discarded reason=stale_user")
                return
            if error is not None:
                # Keep whatever profile we had; surface the failure on the state.
                self._set_state(replace(current, phase=AuthPhase.READY, profile_error=error))
            else:
                self._set_state(replace(current, phase=AuthPhase.READY, profile=profile, profile_error=None))

    # --- Operations -------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Password sign-in. State follows via the SIGNED_IN notification."""
        logger.debug("auth.sign_in")
        try:
            response = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            logger.warning("auth.sign_in_failed reason=%s", exc.__class__.__name__)
            return AuthResult(None, AuthError(error_message(exc)))
        return AuthResult(response, None)

    def sign_up(self, email: str, password: str, username: str, full_name: str, role: str) -> AuthResult:
        """Register a new account after a username pre-check.

        The profile row itself is created by a database trigger from the
        metadata attached here (`full_name`, `username`, `role`).
        """
        if role not in ALLOWED_ROLES:
            return AuthResult(None, AuthError(f"Unknown role: {role}"))
        try:
            taken = self._profiles.username_exists(username)
        except Exception as exc:
            # Pre-check only; the unique constraint still guards the insert.
            logger.warning("auth.sign_up_precheck_failed reason=%s", exc.__class__.__name__)
            taken = False
        if taken:
            logger.info("auth.sign_up_rejected reason=username_taken")
            return AuthResult(None, UsernameTakenError())

        try:
            response = self._client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": {"full_name": full_name, "username": username, "role": role}},
                }
            )
        except Exception as exc:
            logger.warning("auth.sign_up_failed reason=%s", exc.__class__.__name__)
            return AuthResult(None, AuthError(error_message(exc)))
        logger.info("auth.sign_up_completed role=%s", role)
        return AuthResult(response, None)

    def sign_out(self) -> AuthResult:
        """Clear local state first, then sign out remotely."""
        self._set_state(AuthState())
        try:
            self._client.auth.sign_out()
        except Exception as exc:
            logger.error("auth.sign_out_failed reason=%s", exc.__class__.__name__)
            return AuthResult(None, AuthError(error_message(exc)))
        return AuthResult(None, None)

    def update_profile(self, updates: Mapping[str, Any]) -> AuthResult:
        """Send a partial update for the current user's profile row.

        On success the in-memory profile is replaced with the row returned by
        the server rather than merged locally.
        """
        user = self.user
        uid = _user_id(user)
        if uid is None:
            return AuthResult(None, NoUserError())
        unknown = sorted(set(updates) - PROFILE_UPDATE_FIELDS)
        if unknown:
            return AuthResult(None, ProfileUpdateError("Unknown profile field(s): " + ", ".join(unknown)))
        if not updates:
            return AuthResult(None, ProfileUpdateError("No profile fields to update"))
        if "role" in updates and updates["role"] not in ALLOWED_ROLES:
            return AuthResult(None, ProfileUpdateError(f"Unknown role: {updates['role']}"))

        try:
            profile = self._profiles.update(uid, updates)
        except Exception as exc:
            logger.warning("auth.profile_update_failed reason=%s", exc.__class__.__name__)
            return AuthResult(None, AuthError(error_message(exc)))

        with self._lock:
            if _user_id(self._state.user) == uid:
                self._set_state(replace(self._state, profile=profile, profile_error=None))
        return AuthResult(profile, None)

    def refresh_profile(self) -> None:
        """Reload the profile for the current session; no-op when signed out."""
        uid = _user_id(_session_user(self.session))
        if uid is None:
            return
        self._load_profile(uid)


__all__ = ["AuthPhase", "AuthState", "SessionManager", "StateListener"]
