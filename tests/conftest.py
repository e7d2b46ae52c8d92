"""Shared pytest fixtures and fakes for PictureMe tests."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable
from typing import Generator

import pytest
from PIL import Image

from pictureme.core.config import PictureMeConfig
from pictureme.core.errors import GenerationExhausted
from pictureme.core.models import (
    BatchPlan,
    GeneratedImage,
    GenerationPayload,
    PromptSpec,
    ReferenceImage,
)


def make_png(size: tuple[int, int] = (64, 64), color=(255, 0, 0)) -> bytes:
    """Encode a solid-colour PNG of ``size``."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeGenerationClient:
    """Generation client double driven by per-call outcomes.

    ``outcomes`` maps a prompt id (looked up as a substring of the
    instruction) to either PNG bytes or an exception.  Missing ids succeed
    with a fresh red image.
    """

    def __init__(
        self,
        outcomes: dict[str, bytes | Exception] | None = None,
        style: str | Exception = "neon lasers and fog",
    ) -> None:
        self.outcomes = dict(outcomes or {})
        self.style = style
        self.payloads: list[GenerationPayload] = []
        self.text_calls: list[str] = []
        self.gate: asyncio.Event | None = None

    def _outcome(self, instruction: str) -> bytes | Exception:
        for key, outcome in self.outcomes.items():
            if key in instruction:
                return outcome
        return make_png()

    async def generate(self, payload: GenerationPayload, total_attempts=None) -> GeneratedImage:
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self._outcome(payload.instruction)
        if isinstance(outcome, Exception):
            raise outcome
        return GeneratedImage(data=outcome)

    async def generate_text(self, instruction: str, total_attempts=None) -> str:
        self.text_calls.append(instruction)
        if isinstance(self.style, Exception):
            raise self.style
        return self.style


def exhausted(message: str = "API returned no image data.") -> GenerationExhausted:
    return GenerationExhausted(3, message)


@pytest.fixture
def test_config(monkeypatch) -> PictureMeConfig:
    """Configuration isolated from the environment and any .env file."""
    for key in ("PICTUREME_API_KEY", "PICTUREME_MODEL_NAME", "PICTUREME_API_BASE_URL"):
        monkeypatch.delenv(key, raising=False)
    return PictureMeConfig(_env_file=None, api_key="test-key")


@pytest.fixture
def png_bytes() -> bytes:
    return make_png((120, 80), color=(0, 128, 255))


@pytest.fixture
def reference_image() -> ReferenceImage:
    return ReferenceImage(data=make_png((32, 32), color=(10, 20, 30)))


@pytest.fixture
def prompts() -> tuple[PromptSpec, ...]:
    return (
        PromptSpec(id="alpha", base="a first look"),
        PromptSpec(id="beta", base="a second look"),
        PromptSpec(id="gamma", base="a third look"),
    )


@pytest.fixture
def simple_plan(prompts, reference_image) -> BatchPlan:
    def build(prompt: PromptSpec, album_style: str) -> str:
        return f"[{prompt.id}] {prompt.base} {album_style}".strip()

    return BatchPlan(prompts=prompts, reference=reference_image, build_instruction=build)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def test_client(fake_client) -> Generator:
    """FastAPI TestClient with the orchestrator backed by a fake client."""
    from fastapi.testclient import TestClient

    from pictureme.api.main import app
    from pictureme.core.batch import BatchOrchestrator

    with TestClient(app) as client:
        app.state.orchestrator = BatchOrchestrator(fake_client)
        yield client
