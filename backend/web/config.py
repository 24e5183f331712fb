"""
Configuration and startup security checks for the SUCCMS grading service.

Why: A grading endpoint that silently runs the stub model or talks to
Supabase over plain HTTP must never reach production. This module provides a
single guard that enforces minimal production safety constraints without
burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks:
    - AI_BACKEND must not be the stub adapter.
    - GEMINI_API_KEY must be set and not a placeholder for the Gemini backend.
    - SUPABASE_URL, when configured, must use https.
    """

    env = os.getenv("SUCCMS_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) AI backend safety: stub adapters must never run in prod/stage.
    ai_backend = (os.getenv("AI_BACKEND") or "gemini").strip().lower()
    if ai_backend == "stub":
        raise SystemExit(
            "Refusing to start: AI_BACKEND=stub is not allowed in production/staging. Configure a real adapter."
        )

    # 2) Model credential must be present; a missing key would fail every request.
    if ai_backend == "gemini":
        key = (os.getenv("GEMINI_API_KEY") or "").strip()
        if not key or key.upper().startswith("CHANGE_ME"):
            raise SystemExit("Refusing to start: GEMINI_API_KEY is unset or a placeholder in production.")

    # 3) Supabase endpoint must use HTTPS in production-like environments
    url = (os.getenv("SUPABASE_URL") or "").strip().lower()
    if url.startswith("http://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")
