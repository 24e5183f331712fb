"""
AI configuration parsing and validation for the grading function.

Intent:
    Provide a single place to read environment variables that control adapter
    selection (DI), the Gemini model and credential, outbound timeouts and the
    image size cap.

Why:
    Centralising configuration keeps validation and defaults explicit and lets
    tests exercise config behaviour without starting the web app.
"""
from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class GradingConfig:
    backend: str  # "gemini" | "stub"
    adapter_path: str
    model: str
    api_key: str | None
    timeout_image_fetch_seconds: int
    timeout_grading_seconds: int
    max_image_bytes: int


def _int_env(name: str, default: int, *, low: int = 1, high: int = 300) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < low or value > high:
        raise ValueError(f"{name} out of range ({low}..{high}), got: {value}")
    return value


def is_prod_like() -> bool:
    env = (os.getenv("SUCCMS_ENV") or "dev").lower()
    return env in {"prod", "production", "stage", "staging"}


def load_grading_config() -> GradingConfig:
    """
    Parse and validate grading configuration from environment variables.

    Behavior:
        - `AI_BACKEND` selects the DI alias: "gemini" (default) or "stub".
        - `LEARNING_GRADING_ADAPTER` overrides the adapter module path.
        - Timeouts are validated to 1..300 seconds.
        - The API key is returned as-is (possibly None); the adapter decides
          whether it needs one.
    """
    backend = (os.getenv("AI_BACKEND") or "gemini").strip().lower()
    if backend not in {"gemini", "stub"}:
        raise ValueError("AI_BACKEND must be 'gemini' or 'stub'")
    if backend == "stub" and is_prod_like():
        raise ValueError("AI_BACKEND=stub is not allowed in production/staging environments.")

    default_adapter = (
        "backend.learning.adapters.gemini_grading"
        if backend == "gemini"
        else "backend.learning.adapters.stub_grading"
    )
    adapter_path = os.getenv("LEARNING_GRADING_ADAPTER", default_adapter)

    api_key = (os.getenv("GEMINI_API_KEY") or "").strip() or None

    return GradingConfig(
        backend=backend,
        adapter_path=adapter_path,
        model=(os.getenv("GEMINI_MODEL") or "gemini-1.5-flash").strip(),
        api_key=api_key,
        timeout_image_fetch_seconds=_int_env("AI_TIMEOUT_IMAGE_FETCH", 15),
        timeout_grading_seconds=_int_env("AI_TIMEOUT_GRADING", 60),
        max_image_bytes=_int_env("AI_MAX_IMAGE_BYTES", 10 * 1024 * 1024, high=50 * 1024 * 1024),
    )
