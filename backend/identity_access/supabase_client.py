"""
Supabase client construction for the session manager.

Why:
    The host application composes the session manager with a client created
    from environment configuration. Keeping construction here avoids a
    module-level singleton and lets tests pass a fake client instead.

Security:
    Uses the public anon key only. Row access is governed by RLS on the
    Supabase side; the service role key is never needed on the client.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any


logger = logging.getLogger("succms.identity_access")


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    anon_key: str
    postgrest_timeout_seconds: int = 30


def load_supabase_config() -> SupabaseConfig:
    """Read SUPABASE_URL / SUPABASE_ANON_KEY; raise ValueError when missing."""
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
    return SupabaseConfig(url=url, anon_key=key)


def create_supabase_client(config: SupabaseConfig | None = None) -> Any:
    """Return a `supabase.Client` for the configured project."""
    cfg = config or load_supabase_config()
    # Lazy import keeps the dependency out of code paths that receive a fake client.
    from supabase import ClientOptions, create_client

    options = ClientOptions(postgrest_client_timeout=cfg.postgrest_timeout_seconds)
    client = create_client(cfg.url, cfg.anon_key, options=options)
    logger.info("supabase_client_created type=anon")
    return client


__all__ = ["SupabaseConfig", "load_supabase_config", "create_supabase_client"]
