"""
Identity domain constants and the in-memory profile value.

Why:
- Centralize allowed roles and editable profile fields to avoid drift between
  the session manager, the sign-up form and the profile store.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Mapping, Optional

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "lecturer", "admin"})

# Columns a user may change through `update_profile`. `id` is the key and never editable.
PROFILE_UPDATE_FIELDS = frozenset({"full_name", "username", "email", "role", "faculty", "programme"})

PROFILES_TABLE = "user_profiles"


@dataclass(frozen=True)
class UserProfile:
    id: str
    full_name: str
    username: str
    email: str
    role: str
    faculty: Optional[str] = None
    programme: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserProfile":
        """Build a profile from a `user_profiles` row; extra columns are ignored."""
        return cls(
            id=str(row["id"]),
            full_name=str(row.get("full_name") or ""),
            username=str(row.get("username") or ""),
            email=str(row.get("email") or ""),
            role=str(row.get("role") or "student"),
            faculty=row.get("faculty"),
            programme=row.get("programme"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


__all__ = ["ALLOWED_ROLES", "PROFILE_UPDATE_FIELDS", "PROFILES_TABLE", "UserProfile"]
