"""
AI grading endpoint (router-only module).

Why:
    Lecturer-facing UIs post one submission at a time and receive a score plus
    feedback. The route is a thin adapter over `GradeSubmissionUseCase`: it
    parses the camelCase JSON body, builds the configured model adapter and
    converts every failure into the same `{"error": ...}` 500 payload.

Notes:
    - Browsers call this cross-origin, so every response carries permissive
      CORS headers and OPTIONS is answered without touching the body.
    - `build_grading_model` and `set_http_transport` are module-level seams for
      tests (fake model, httpx.MockTransport for image downloads).
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from backend.learning.adapters.ports import GradingError, GradingModelProtocol
from backend.learning.config import GradingConfig, load_grading_config
from backend.learning.usecases.grading import GradeSubmissionInput, GradeSubmissionUseCase


grading_router = APIRouter(tags=["Grading"])  # explicit paths, no prefix
logger = logging.getLogger("succms.web.grading")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

_HTTP_TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


class GradingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    submission_text: Optional[str] = Field(default=None, alias="submissionText")
    submission_file_url: Optional[str] = Field(default=None, alias="submissionFileUrl")
    rubric: str = ""
    assignment_type: Optional[str] = Field(default=None, alias="assignmentType")


def set_http_transport(transport: Optional[httpx.AsyncBaseTransport]) -> None:
    """Allow tests to route submission image downloads to a fake transport."""
    global _HTTP_TRANSPORT
    _HTTP_TRANSPORT = transport


def build_grading_model(config: GradingConfig) -> GradingModelProtocol:
    """Load the adapter module named in config and call its `build(config)`."""
    module = importlib.import_module(config.adapter_path)
    return module.build(config)  # type: ignore[attr-defined]


def _error_response(message: str) -> JSONResponse:
    return JSONResponse({"error": message or "Unknown error"}, status_code=500, headers=CORS_HEADERS)


@grading_router.options("/grade-assignment")
async def grade_assignment_preflight() -> Response:
    return Response(content="ok", status_code=200, headers=CORS_HEADERS)


@grading_router.post("/grade-assignment")
async def grade_assignment(request: Request):
    """Grade one submission with the configured model.

    Behavior:
        - 200 with the model's JSON object (`score`, `feedback`).
        - 500 with `{"error": message}` for any failure: unreadable body,
          missing API key, image download problems, timeouts, model errors or
          non-JSON model output. No partial results.

    Permissions:
        None evaluated here; the function is deployed behind the platform's
        API gateway which checks the caller's key.
    """
    try:
        payload: Any = await request.json()
        body = GradingRequest.model_validate(payload)
        config = load_grading_config()
        model = build_grading_model(config)
        usecase = GradeSubmissionUseCase(model, config=config, transport=_HTTP_TRANSPORT)
        result = await usecase.execute(
            GradeSubmissionInput(
                rubric=body.rubric,
                assignment_type=body.assignment_type,
                submission_text=body.submission_text,
                submission_file_url=body.submission_file_url,
            )
        )
        # Rendering happens here so serialization failures share the error shape.
        return JSONResponse(result, status_code=200, headers=CORS_HEADERS)
    except GradingError as exc:
        logger.warning("grading.request_failed kind=%s", exc.__class__.__name__)
        return _error_response(str(exc))
    except Exception as exc:
        logger.exception("grading.request_failed kind=%s", exc.__class__.__name__)
        return _error_response(str(exc))
