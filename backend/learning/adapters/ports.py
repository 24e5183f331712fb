"""
Ports for grading adapters: prompt part types, the model protocol, and errors.

Intent:
    Provide framework-agnostic contracts between the grading use case and
    concrete model adapters (Gemini, stub). Keeping these definitions in a
    dedicated module avoids circular imports and clarifies boundaries.

Design:
    - Prompt parts: plain `str` segments and `InlineImage` blobs, in order
    - Protocol: GradingModelProtocol
    - Error taxonomy: one base class, one subclass per failure origin
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, Union


# ----------------------------- Prompt types ---------------------------------


@dataclass(frozen=True)
class InlineImage:
    """Image bytes sent inline with the prompt.

    Parameters:
        data: Raw image bytes as downloaded.
        mime_type: e.g. "image/png"; defaults upstream to "image/jpeg".
    """

    data: bytes
    mime_type: str

    def __repr__(self) -> str:
        return f"InlineImage(mime_type={self.mime_type!r}, size={len(self.data)})"


PromptPart = Union[str, InlineImage]


# ----------------------------- Protocols ------------------------------------


class GradingModelProtocol(Protocol):
    """Model adapter returns one text completion for an ordered prompt."""

    async def generate(self, parts: Sequence[PromptPart], *, timeout_seconds: int) -> str:
        ...


# ------------------------------ Errors --------------------------------------


class GradingError(Exception):
    """Base class for grading failures; the message is returned to the caller."""


class GradingConfigError(GradingError):
    """Required configuration (e.g. the API key) is missing or invalid."""


class SubmissionFetchError(GradingError):
    """The submission image could not be downloaded."""


class GradingTimeoutError(GradingError):
    """An outbound call exceeded its time budget and was cancelled."""


class GradingModelError(GradingError):
    """The model call failed or returned no text."""


class GradingFormatError(GradingError):
    """The model completion was not a JSON object."""


__all__ = [
    "InlineImage",
    "PromptPart",
    "GradingModelProtocol",
    "GradingError",
    "GradingConfigError",
    "SubmissionFetchError",
    "GradingTimeoutError",
    "GradingModelError",
    "GradingFormatError",
]
