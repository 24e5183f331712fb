"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
give every test a clean, dev-like environment without real credentials.
"""
import sys
from pathlib import Path

import pytest


# Ensure the repository root is importable so `backend.*` resolves in all layouts
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


_AI_ENV_VARS = (
    "SUCCMS_ENV",
    "AI_BACKEND",
    "LEARNING_GRADING_ADAPTER",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "AI_TIMEOUT_IMAGE_FETCH",
    "AI_TIMEOUT_GRADING",
    "AI_MAX_IMAGE_BYTES",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Drop configuration leaking in from the developer shell or other tests."""
    for name in _AI_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_grading_transport():
    """Reset the image download transport seam between tests."""
    from backend.web.routes import grading

    grading.set_http_transport(None)
    yield
    grading.set_http_transport(None)


@pytest.fixture
def fake_supabase():
    from backend.tests.utils.fake_supabase import FakeSupabase

    return FakeSupabase()
