"""
Deterministic grading adapter for local development and tests.

Intent:
    Provide an implementation of `GradingModelProtocol` that needs no API key
    or network. The completion is fenced JSON, like real model output, so the
    full parsing path runs.

Behavior:
    - Text segments after the persona instruction count as content; an image
      counts as content too.
    - Score 50 with content, 0 without.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from backend.learning.adapters.ports import InlineImage, PromptPart


class StubGradingAdapter:
    """Return a fixed grade without calling any model."""

    async def generate(self, parts: Sequence[PromptPart], *, timeout_seconds: int) -> str:
        has_content = any(isinstance(p, InlineImage) for p in parts) or len(parts) > 1
        body = {
            "score": 50 if has_content else 0,
            "feedback": "- Stub grading: no model was called.",
        }
        return "```json\n" + json.dumps(body) + "\n```"


def build(config: Any = None) -> StubGradingAdapter:
    """Factory used by the grading route to instantiate the adapter."""
    return StubGradingAdapter()
