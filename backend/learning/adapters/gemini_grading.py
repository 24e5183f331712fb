"""
Gemini grading adapter using the `google-generativeai` client.

Intent:
    Send the ordered prompt parts (text segments and inline images) to a
    Gemini model and return the single text completion. No streaming.

Notes:
    - `build()` fails fast with GradingConfigError when GEMINI_API_KEY is
      missing, before any network activity.
    - The client module can be injected (`genai_module`) so tests run without
      the real SDK or network.
    - Timeouts surface as GradingTimeoutError; other client failures as
      GradingModelError.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Sequence

from backend.learning.adapters.ports import (
    GradingConfigError,
    GradingModelError,
    GradingTimeoutError,
    InlineImage,
    PromptPart,
)
from backend.learning.config import GradingConfig


logger = logging.getLogger("succms.learning.grading")


def _to_gemini_part(part: PromptPart) -> Any:
    if isinstance(part, InlineImage):
        return {"mime_type": part.mime_type, "data": part.data}
    return part


class _GeminiGradingAdapter:
    """Grading model backed by `genai.GenerativeModel`."""

    def __init__(self, *, genai: Any, model: str) -> None:
        self._genai = genai
        self._model = model

    async def generate(self, parts: Sequence[PromptPart], *, timeout_seconds: int) -> str:
        payload = [_to_gemini_part(p) for p in parts]
        model = self._genai.GenerativeModel(self._model)
        try:
            response = await model.generate_content_async(payload, request_options={"timeout": timeout_seconds})
        except TimeoutError as exc:
            raise GradingTimeoutError(f"Grading model timed out after {timeout_seconds}s") from exc
        except Exception as exc:
            logger.warning("learning.grading.model_failed model=%s reason=%s", self._model, exc.__class__.__name__)
            raise GradingModelError(str(exc) or exc.__class__.__name__) from exc

        try:
            text = response.text
        except Exception as exc:
            # The SDK raises ValueError when the candidate was blocked or empty.
            raise GradingModelError("Model returned no text") from exc
        if not isinstance(text, str):
            raise GradingModelError("Model returned no text")
        logger.info("learning.grading.model_completed model=%s chars=%s", self._model, len(text))
        return text


def build(config: GradingConfig, *, genai_module: Any = None) -> _GeminiGradingAdapter:
    """Factory used by the grading route to construct the adapter instance."""
    if not config.api_key:
        raise GradingConfigError("No API Key found")
    genai = genai_module or importlib.import_module("google.generativeai")
    genai.configure(api_key=config.api_key)
    return _GeminiGradingAdapter(genai=genai, model=config.model)
