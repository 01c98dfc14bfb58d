"""Shared pytest fixtures for VoidWeaver tests.

No test touches the network: every provider call is answered by a
:class:`ProviderStub` plugged into :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import asyncio
import base64
import io
import json
import time
import zipfile
from typing import Any, Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from voidweaver.api.main import app, get_service
from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.service import ImageService
from voidweaver.core.streaming import stream_events
from voidweaver.core.types import GenerationRequest

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-body"
SKETCH_B64 = base64.b64encode(b"sketch-image").decode("ascii")
FINAL_B64 = base64.b64encode(b"final-image").decode("ascii")
CRITIQUE_TEXT = "Fix the hands, brighten the sky, center the fox."
STYLE_TEXT = "ukiyo-e, watercolor, soft pastel, studio ghibli, golden hour"
GOOGLE_KEY = "AIzaSyTEST-google-key-0000"
NOVELAI_KEY = "pst-novelai-key-0000"

ANALYSIS_PAYLOAD = {
    "modules": [
        {
            "name": "style",
            "displayName": "Style",
            "locked": False,
            "tags": [{"id": "t1", "text": "anime", "weight": 1.0}],
        },
        {
            "name": "subject",
            "displayName": "Subject",
            "locked": False,
            "tags": [{"id": "t2", "text": "red fox", "weight": 1.3}],
        },
    ],
    "rawPrompt": "anime, red fox",
}


def gemini_image_body(data: str) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "Here is your image."},
                        {"inlineData": {"mimeType": "image/png", "data": data}},
                    ]
                }
            }
        ]
    }


def gemini_text_body(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def novelai_archive(*entries: tuple[str, bytes]) -> bytes:
    """Build a ZIP archive the way NovelAI returns it."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries or (("image_0.png", PNG_BYTES),):
            zf.writestr(name, content)
    return buffer.getvalue()


class ProviderStub:
    """Fake Gemini + NovelAI backend.

    Requests are routed to a named slot (``image``, ``edit``, ``critique``,
    ``style``, ``analyze``, ``refine``, ``novelai``).  Each slot holds a
    ``(status, payload)`` pair, or an exception to raise.  Every request is
    recorded in :attr:`calls`.
    """

    def __init__(self, config: VoidWeaverConfig) -> None:
        self.config = config
        self.calls: list[tuple[str, httpx.Request]] = []
        self.responses: dict[str, Any] = {
            "image": (200, gemini_image_body(SKETCH_B64)),
            "edit": (200, gemini_image_body(FINAL_B64)),
            "critique": (200, gemini_text_body(CRITIQUE_TEXT)),
            "style": (200, gemini_text_body(STYLE_TEXT)),
            "analyze": (200, gemini_text_body(json.dumps(ANALYSIS_PAYLOAD))),
            "refine": (200, gemini_text_body(json.dumps({"modules": []}))),
            "novelai": (200, novelai_archive()),
        }

    def route(self, request: httpx.Request) -> str:
        if request.url.host == httpx.URL(self.config.novelai_url).host:
            return "novelai"
        model = request.url.path.rsplit("/", 1)[-1].split(":", 1)[0]
        if model == self.config.gemini_image_model:
            return "image"
        if model == self.config.gemini_edit_model:
            return "edit"
        instruction = json.loads(request.content)["contents"][0]["parts"][0].get("text", "")
        if "art director" in instruction:
            return "critique"
        if "style or artist tags" in instruction:
            return "style"
        if "image analyst" in instruction:
            return "analyze"
        return "refine"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        name = self.route(request)
        self.calls.append((name, request))
        response = self.responses[name]
        if isinstance(response, Exception):
            raise response
        status, payload = response
        if isinstance(payload, bytes):
            return httpx.Response(status, content=payload)
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def request_body(self, name: str) -> dict[str, Any]:
        """JSON body of the first call routed to *name*."""
        for call_name, request in self.calls:
            if call_name == name:
                return json.loads(request.content)
        raise AssertionError(f"no '{name}' call recorded (calls: {self.call_names})")


def parse_sse(text: str) -> list[tuple[str, str]]:
    """Split an ``text/event-stream`` body into ``(event, data)`` pairs."""
    events = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        event, data = "message", []
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: ") :]
            elif line.startswith("data: "):
                data.append(line[len("data: ") :])
        events.append((event, "\n".join(data)))
    return events


@pytest.fixture
def test_config(monkeypatch) -> VoidWeaverConfig:
    """Configuration with defaults only (no .env, no VOIDWEAVER_ overrides).

    Returns:
        VoidWeaverConfig instance for testing
    """
    for name in list(VoidWeaverConfig.model_fields):
        monkeypatch.delenv(f"VOIDWEAVER_{name.upper()}", raising=False)
    return VoidWeaverConfig(_env_file=None, stream_deadline=5.0)


@pytest.fixture
def provider_stub(test_config: VoidWeaverConfig) -> ProviderStub:
    return ProviderStub(test_config)


@pytest.fixture
def http_client(provider_stub: ProviderStub) -> httpx.AsyncClient:
    """Async client whose transport is the provider stub."""
    return httpx.AsyncClient(transport=httpx.MockTransport(provider_stub))


@pytest.fixture
def service(test_config: VoidWeaverConfig, http_client: httpx.AsyncClient) -> ImageService:
    return ImageService(test_config, http_client)


@pytest.fixture
def run_stream(service: ImageService) -> Callable[..., list[tuple[str, str]]]:
    """Run a streaming request to completion and return its parsed events."""

    def _run(request: GenerationRequest, deadline: float = 5.0) -> list[tuple[str, str]]:
        async def _collect() -> bytes:
            sink, task = service.start_stream(request)
            frames = [
                frame
                async for frame in stream_events(sink, task, expires_at=time.monotonic() + deadline)
            ]
            await asyncio.gather(task, return_exceptions=True)
            return b"".join(frames)

        return parse_sse(asyncio.run(_collect()).decode("utf-8"))

    return _run


@pytest.fixture
def test_client(service: ImageService) -> Generator[TestClient, None, None]:
    """TestClient wired to the stubbed service.

    Yields:
        FastAPI TestClient instance
    """
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
