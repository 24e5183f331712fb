"SUCCMS Learn grading service"
from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from backend.web import config as _cfg
from backend.web.routes.grading import grading_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via SUCCMS_ENABLE_DOTENV (default true
      outside pytest).
    """
    import sys
    # Under pytest, do not load .env – tests provide their own env.
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SUCCMS_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("succms.web")

app = FastAPI(title="SUCCMS Learn", description="AI-assisted assignment grading", version="0.1.0")
app.include_router(grading_router)


@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "no-store"})


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=(os.getenv("LOG_LEVEL") or "INFO").upper())
    logger.info("web.starting env=%s", os.getenv("SUCCMS_ENV", "dev"))
    uvicorn.run(
        "backend.web.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
