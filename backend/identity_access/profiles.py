"""
Profile store over the Supabase `user_profiles` table.

Intent:
    Wrap the three row operations the session manager needs (fetch by id,
    username lookup, partial update) behind a small class. The client is
    duck-typed: anything exposing `.table(name)` with the postgrest query
    builder chain works, which keeps tests free of network access.

Notes:
    Uniqueness of `username` is enforced by a unique constraint in the
    database. `username_exists` is a pre-check for friendlier errors only.
"""
from __future__ import annotations

from typing import Any, Mapping

from backend.identity_access.domain import PROFILES_TABLE, UserProfile


class ProfileStore:
    def __init__(self, client: Any, *, table: str = PROFILES_TABLE) -> None:
        self._client = client
        self._table = table

    def fetch(self, user_id: str) -> UserProfile:
        """Return the single profile row for `user_id`.

        Raises LookupError when no row is returned; query errors from the
        client (e.g. postgrest APIError) propagate unchanged.
        """
        resp = self._client.table(self._table).select("*").eq("id", user_id).single().execute()
        row = getattr(resp, "data", None)
        if not row:
            raise LookupError("profile_not_found")
        return UserProfile.from_row(row)

    def username_exists(self, username: str) -> bool:
        resp = self._client.table(self._table).select("username").eq("username", username).limit(1).execute()
        return bool(getattr(resp, "data", None))

    def update(self, user_id: str, updates: Mapping[str, Any]) -> UserProfile:
        """Apply a partial update and return the row as stored by the server."""
        resp = self._client.table(self._table).update(dict(updates)).eq("id", user_id).execute()
        rows = getattr(resp, "data", None) or []
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            raise LookupError("profile_not_found")
        return UserProfile.from_row(rows[0])


__all__ = ["ProfileStore"]
