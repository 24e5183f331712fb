"""
Sign-in and sign-up form handling.

Intent:
    Keep the client-side checks of the login screen next to the session
    manager so every front end applies the same rules before any network call:
      - sign-in needs a selected role plus email and password,
      - sign-up passwords need at least 6 characters and must match the
        confirmation.
    After a successful sign-in the account's profile role must match the
    selected role; otherwise the session is signed out again.
    The helpers return a `FormOutcome` holding the single message the UI shows
    inline (error or info).
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Optional

from backend.identity_access.domain import ALLOWED_ROLES
from backend.identity_access.session_manager import SessionManager


logger = logging.getLogger("succms.identity_access")

MIN_PASSWORD_LENGTH = 6

MSG_ROLE_REQUIRED = "Please select your role"
MSG_REQUIRED_FIELDS = "Please fill in all required fields"
MSG_SIGN_IN_FAILED = "Error during sign in"
MSG_PASSWORD_TOO_SHORT = "Password must be at least 6 characters."
MSG_PASSWORD_MISMATCH = "Passwords do not match."
MSG_ACCOUNT_CREATED = "Account created! Please sign in."


@dataclass(frozen=True)
class SignInForm:
    email: str
    password: str
    role: str


@dataclass(frozen=True)
class SignUpForm:
    email: str
    password: str
    confirm_password: str
    username: str
    full_name: str
    role: str = "student"


@dataclass(frozen=True)
class FormOutcome:
    error: Optional[str] = None
    info: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def role_mismatch_message(registered: str, selected: str) -> str:
    return (
        f"This account is registered as a {registered}, not a {selected}. "
        "Please select the correct role."
    )


def validate_sign_in(form: SignInForm) -> Optional[str]:
    if form.role not in ALLOWED_ROLES:
        return MSG_ROLE_REQUIRED
    if not form.email.strip() or not form.password:
        return MSG_REQUIRED_FIELDS
    return None


def validate_sign_up(form: SignUpForm) -> Optional[str]:
    if len(form.password) < MIN_PASSWORD_LENGTH:
        return MSG_PASSWORD_TOO_SHORT
    if form.password != form.confirm_password:
        return MSG_PASSWORD_MISMATCH
    return None


def _signed_in_user_id(data: Any) -> Optional[str]:
    uid = getattr(getattr(data, "user", None), "id", None)
    return str(uid) if uid is not None else None


def submit_sign_in(manager: SessionManager, form: SignInForm) -> FormOutcome:
    """Validate, sign in, then check the profile role against the selected one.

    A role mismatch (or a profile that cannot be loaded) signs the session out
    again so the user stays on the login screen.
    """
    problem = validate_sign_in(form)
    if problem:
        return FormOutcome(error=problem)
    result = manager.sign_in(form.email.strip(), form.password)
    if result.error is not None:
        return FormOutcome(error=result.error.message)

    uid = _signed_in_user_id(result.data)
    profile = manager.profile
    if profile is None or profile.id != uid:
        manager.refresh_profile()
        profile = manager.profile
    if profile is None or profile.id != uid:
        logger.warning("auth.sign_in_rejected reason=profile_unavailable")
        manager.sign_out()
        return FormOutcome(error=MSG_SIGN_IN_FAILED)
    if profile.role != form.role:
        logger.info("auth.sign_in_rejected reason=role_mismatch role=%s selected=%s", profile.role, form.role)
        manager.sign_out()
        return FormOutcome(error=role_mismatch_message(profile.role, form.role))
    return FormOutcome()


def submit_sign_up(manager: SessionManager, form: SignUpForm) -> FormOutcome:
    """Validate locally, then register; on success the UI switches to sign-in."""
    problem = validate_sign_up(form)
    if problem:
        return FormOutcome(error=problem)
    result = manager.sign_up(
        form.email.strip(),
        form.password,
        form.username.strip(),
        form.full_name.strip(),
        form.role,
    )
    if result.error is not None:
        return FormOutcome(error=result.error.message)
    return FormOutcome(info=MSG_ACCOUNT_CREATED)


__all__ = [
    "SignInForm",
    "SignUpForm",
    "FormOutcome",
    "validate_sign_in",
    "role_mismatch_message",
    "validate_sign_up",
    "submit_sign_in",
    "submit_sign_up",
    "MIN_PASSWORD_LENGTH",
]
