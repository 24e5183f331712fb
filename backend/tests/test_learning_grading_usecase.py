"""
Grading use case: prompt composition, image download, completion parsing.

The model is a hand-written fake that records the prompt; image downloads go
through `httpx.MockTransport`, so nothing leaves the process.
"""
from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Sequence

import httpx
import pytest
from PIL import Image

from backend.learning.adapters.ports import (
    GradingFormatError,
    GradingTimeoutError,
    InlineImage,
    PromptPart,
    SubmissionFetchError,
)
from backend.learning.config import GradingConfig
from backend.learning.usecases.grading import (
    IMAGE_INSTRUCTION,
    GradeSubmissionInput,
    GradeSubmissionUseCase,
    compose_prompt,
    parse_grade_completion,
    persona_instruction,
    resolve_image_mime,
)


def _config(**overrides) -> GradingConfig:
    data = dict(
        backend="stub",
        adapter_path="backend.learning.adapters.stub_grading",
        model="gemini-1.5-flash",
        api_key=None,
        timeout_image_fetch_seconds=5,
        timeout_grading_seconds=5,
        max_image_bytes=1024 * 1024,
    )
    data.update(overrides)
    return GradingConfig(**data)


def _png_bytes() -> bytes:
    buf = BytesIO()
    Image.new("RGB", (2, 2), color=(255, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


class _RecordingModel:
    def __init__(self, reply: str = '{"score": 80, "feedback": "- ok"}', delay: float = 0.0) -> None:
        self.reply = reply
        self.delay = delay
        self.calls: list[list[PromptPart]] = []

    async def generate(self, parts: Sequence[PromptPart], *, timeout_seconds: int) -> str:
        self.calls.append(list(parts))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reply


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


# --- Prompt composition -------------------------------------------------------


def test_prompt_embeds_rubric_verbatim():
    text = persona_instruction("Explain photosynthesis in 3 steps")
    assert text.startswith("You are a strict university professor.")
    assert '"Explain photosynthesis in 3 steps"' in text
    assert "'score' (0-100)" in text


def test_prompt_order_with_image_and_text():
    image = InlineImage(data=b"img", mime_type="image/png")
    parts = compose_prompt(GradeSubmissionInput(rubric="R", submission_text="hello"), image)

    assert parts[0] == persona_instruction("R")
    assert parts[1] is image
    assert parts[2] == IMAGE_INSTRUCTION
    assert parts[3] == '\nStudent Text Submission: "hello"'
    assert len(parts) == 4


def test_prompt_without_submission_is_persona_only():
    parts = compose_prompt(GradeSubmissionInput(rubric="R"))
    assert parts == [persona_instruction("R")]


# --- Completion parsing -------------------------------------------------------


def test_parse_strips_code_fences():
    raw = '```json\n{"score": 85, "feedback": "- good\\n- tidy"}\n```'
    assert parse_grade_completion(raw) == {"score": 85, "feedback": "- good\n- tidy"}


def test_parse_passes_extra_fields_through():
    assert parse_grade_completion('{"score": 10, "feedback": "x", "notes": [1]}')["notes"] == [1]


@pytest.mark.parametrize("raw", ["Great work!", "", "```json\n{score: 1}\n```"])
def test_parse_rejects_non_json(raw):
    with pytest.raises(GradingFormatError):
        parse_grade_completion(raw)


@pytest.mark.parametrize("raw", ['{"score": NaN, "feedback": "x"}', '{"score": -Infinity}'])
def test_parse_rejects_non_finite_numbers(raw):
    with pytest.raises(GradingFormatError) as exc:
        parse_grade_completion(raw)
    assert "non-finite" in str(exc.value)


def test_parse_rejects_non_object():
    with pytest.raises(GradingFormatError) as exc:
        parse_grade_completion("[1, 2]")
    assert "not a JSON object" in str(exc.value)


# --- MIME resolution ----------------------------------------------------------


def test_mime_prefers_declared_image_type():
    assert resolve_image_mime("image/webp; charset=binary", b"whatever") == "image/webp"


def test_mime_sniffs_when_header_is_generic():
    assert resolve_image_mime("application/octet-stream", _png_bytes()) == "image/png"


def test_mime_falls_back_to_jpeg():
    assert resolve_image_mime("", b"not an image") == "image/jpeg"


# --- Use case -----------------------------------------------------------------


@pytest.mark.anyio
async def test_execute_text_only_makes_single_model_call():
    model = _RecordingModel()
    usecase = GradeSubmissionUseCase(model, config=_config())

    result = await usecase.execute(GradeSubmissionInput(rubric="R", submission_text="answer"))

    assert result == {"score": 80, "feedback": "- ok"}
    assert len(model.calls) == 1
    assert not any(isinstance(p, InlineImage) for p in model.calls[0])


@pytest.mark.anyio
async def test_execute_downloads_image_with_declared_mime():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=b"\xff\xd8fake", headers={"content-type": "image/gif"})

    model = _RecordingModel()
    usecase = GradeSubmissionUseCase(model, config=_config(), transport=_transport(handler))

    await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/a.gif"))

    assert seen == ["https://files.test/a.gif"]
    image = model.calls[0][1]
    assert isinstance(image, InlineImage)
    assert image.mime_type == "image/gif"
    assert image.data == b"\xff\xd8fake"
    assert model.calls[0][2] == IMAGE_INSTRUCTION


@pytest.mark.anyio
async def test_execute_sniffs_png_without_content_type():
    png = _png_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=png, headers={"content-type": "application/octet-stream"})

    model = _RecordingModel()
    usecase = GradeSubmissionUseCase(model, config=_config(), transport=_transport(handler))

    await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/scan"))

    assert model.calls[0][1].mime_type == "image/png"


@pytest.mark.anyio
async def test_execute_http_error_is_fetch_error_and_model_not_called():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, content=b"missing")

    model = _RecordingModel()
    usecase = GradeSubmissionUseCase(model, config=_config(), transport=_transport(handler))

    with pytest.raises(SubmissionFetchError) as exc:
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/x.png"))

    assert "HTTP 404" in str(exc.value)
    assert model.calls == []


@pytest.mark.anyio
async def test_execute_rejects_oversized_image():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 2048, headers={"content-type": "image/png"})

    usecase = GradeSubmissionUseCase(
        _RecordingModel(), config=_config(max_image_bytes=1024), transport=_transport(handler)
    )

    with pytest.raises(SubmissionFetchError) as exc:
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/big.png"))
    assert "size limit" in str(exc.value)


@pytest.mark.anyio
@pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://files.test/a.png", "not a url"])
async def test_execute_rejects_non_http_urls(url):
    model = _RecordingModel()
    usecase = GradeSubmissionUseCase(model, config=_config())

    with pytest.raises(SubmissionFetchError):
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url=url))
    assert model.calls == []


@pytest.mark.anyio
async def test_execute_image_fetch_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    usecase = GradeSubmissionUseCase(_RecordingModel(), config=_config(), transport=_transport(handler))

    with pytest.raises(GradingTimeoutError):
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/a.png"))


@pytest.mark.anyio
async def test_execute_connection_error_is_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    usecase = GradeSubmissionUseCase(_RecordingModel(), config=_config(), transport=_transport(handler))

    with pytest.raises(SubmissionFetchError):
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_file_url="https://files.test/a.png"))


@pytest.mark.anyio
async def test_execute_model_timeout_is_cancelled():
    model = _RecordingModel(delay=10)
    usecase = GradeSubmissionUseCase(model, config=_config(timeout_grading_seconds=1))

    with pytest.raises(GradingTimeoutError) as exc:
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_text="t"))
    assert "timed out" in str(exc.value)


@pytest.mark.anyio
async def test_execute_non_json_completion_raises():
    usecase = GradeSubmissionUseCase(_RecordingModel(reply="Great work!"), config=_config())

    with pytest.raises(GradingFormatError):
        await usecase.execute(GradeSubmissionInput(rubric="R", submission_text="t"))
