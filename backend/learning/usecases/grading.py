"""
Grade one submission against a rubric with a generative model.

Intent:
    Framework-free boundary for the grading function: compose the prompt,
    optionally download the submission image, call the model once, and parse
    its completion into a JSON object. No state is kept between calls.

Behavior:
    - The rubric is embedded verbatim (trusted lecturer input).
    - Missing text and file are not rejected; the model receives an
      under-specified prompt.
    - Both outbound calls run under an explicit time budget; on expiry the
      pending call is cancelled and GradingTimeoutError is raised.
    - No retry and no repair of malformed model output.

Privacy:
    Logs carry flags and sizes only, never submission text or rubric content.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
import json
import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from backend.learning.adapters.ports import (
    GradingFormatError,
    GradingModelProtocol,
    GradingTimeoutError,
    InlineImage,
    PromptPart,
    SubmissionFetchError,
)
from backend.learning.config import GradingConfig


logger = logging.getLogger("succms.learning.grading")

DEFAULT_IMAGE_MIME = "image/jpeg"
IMAGE_INSTRUCTION = (
    "\nAnalyze this image. If it's handwriting, transcribe it first internally. "
    "If it's a graph, check the axes and data."
)


@dataclass
class GradeSubmissionInput:
    rubric: str
    assignment_type: Optional[str] = None
    submission_text: Optional[str] = None
    submission_file_url: Optional[str] = None


def persona_instruction(rubric: str) -> str:
    return (
        "You are a strict university professor. Grade the following student submission "
        "based strictly on this rubric: \n"
        f'"{rubric}"\n'
        ". Return a JSON object with 'score' (0-100) and 'feedback' (concise, bullet points)."
    )


def compose_prompt(req: GradeSubmissionInput, image: Optional[InlineImage] = None) -> list[PromptPart]:
    """Return the ordered prompt: persona, [image, image instruction], [text]."""
    parts: list[PromptPart] = [persona_instruction(req.rubric)]
    if image is not None:
        parts.append(image)
        parts.append(IMAGE_INSTRUCTION)
    if req.submission_text:
        parts.append(f'\nStudent Text Submission: "{req.submission_text}"')
    return parts


def _reject_non_finite(token: str) -> Any:
    # NaN/Infinity are not JSON and cannot be rendered back to the caller.
    raise GradingFormatError(f"Model response is not valid JSON: non-finite number {token}")


def parse_grade_completion(text: str) -> dict[str, Any]:
    """Strip Markdown code fences and parse the remainder as a JSON object."""
    cleaned = (text or "").replace("```json", "").replace("```", "").strip()
    try:
        data = json.loads(cleaned, parse_constant=_reject_non_finite)
    except json.JSONDecodeError as exc:
        raise GradingFormatError(f"Model response is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise GradingFormatError("Model response is not a JSON object")
    return data


def _sniff_image_mime(data: bytes) -> Optional[str]:
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    return Image.MIME.get(fmt) if fmt else None


def resolve_image_mime(content_type: str, data: bytes) -> str:
    """Prefer the server's image Content-Type, then sniff, then JPEG."""
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared.startswith("image/"):
        return declared
    return _sniff_image_mime(data) or DEFAULT_IMAGE_MIME


class GradeSubmissionUseCase:
    def __init__(
        self,
        model: GradingModelProtocol,
        *,
        config: GradingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._config = config
        self._transport = transport

    async def execute(self, req: GradeSubmissionInput) -> dict[str, Any]:
        """Grade a submission and return the model's JSON object.

        Raises:
            SubmissionFetchError: image URL unusable, HTTP error or too large.
            GradingTimeoutError: image fetch or model call exceeded its budget.
            GradingModelError / GradingFormatError: model failed or replied
                with something other than a JSON object.
        """
        image: Optional[InlineImage] = None
        if req.submission_file_url:
            image = await self._fetch_image(req.submission_file_url)

        parts = compose_prompt(req, image)
        budget = self._config.timeout_grading_seconds
        try:
            text = await asyncio.wait_for(self._model.generate(parts, timeout_seconds=budget), timeout=budget)
        except asyncio.TimeoutError as exc:
            logger.warning("learning.grading.timeout stage=model budget_s=%s", budget)
            raise GradingTimeoutError(f"Grading model timed out after {budget}s") from exc

        result = parse_grade_completion(text)
        logger.info(
            "learning.grading.completed assignment_type=%s has_text=%s has_image=%s",
            req.assignment_type or "-",
            bool(req.submission_text),
            image is not None,
        )
        return result

    async def _fetch_image(self, url: str) -> InlineImage:
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise SubmissionFetchError("Submission file URL must be http(s)")
        budget = self._config.timeout_image_fetch_seconds
        try:
            return await asyncio.wait_for(self._download(url, budget), timeout=budget)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("learning.grading.timeout stage=image_fetch budget_s=%s", budget)
            raise GradingTimeoutError(f"Submission file fetch timed out after {budget}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("learning.grading.image_fetch_failed reason=%s", exc.__class__.__name__)
            raise SubmissionFetchError(str(exc) or "Submission file fetch failed") from exc

    async def _download(self, url: str, timeout_seconds: int) -> InlineImage:
        max_bytes = self._config.max_image_bytes
        async with httpx.AsyncClient(
            timeout=timeout_seconds, follow_redirects=True, transport=self._transport
        ) as client:
            async with client.stream("GET", url) as resp:
                if resp.status_code >= 400:
                    raise SubmissionFetchError(f"Submission file fetch failed with HTTP {resp.status_code}")
                data = bytearray()
                async for chunk in resp.aiter_bytes():
                    data.extend(chunk)
                    if len(data) > max_bytes:
                        raise SubmissionFetchError("Submission file exceeds size limit")
                content_type = resp.headers.get("content-type", "")
        mime = resolve_image_mime(content_type, bytes(data))
        logger.debug("learning.grading.image_fetched size=%s mime=%s", len(data), mime)
        return InlineImage(data=bytes(data), mime_type=mime)


__all__ = [
    "GradeSubmissionInput",
    "GradeSubmissionUseCase",
    "compose_prompt",
    "parse_grade_completion",
    "persona_instruction",
    "resolve_image_mime",
    "IMAGE_INSTRUCTION",
]
