"""Shared pytest fixtures for Sticker Sheet Studio tests."""

from __future__ import annotations

import asyncio
import base64
import io
import json
import random
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from stickersheet.core.config import StickerSheetConfig

SHEET_URL = "https://cdn.test/sheet.png"


def sse_line(content: str) -> str:
    """Build one ``data:`` record carrying a content delta."""
    envelope = {"choices": [{"delta": {"content": content}}]}
    return "data: " + json.dumps(envelope) + "\n"


def sse_chunks(*contents: str, done: bool = True) -> list[bytes]:
    """Build one encoded chunk per delta, optionally followed by ``[DONE]``."""
    chunks = [sse_line(c).encode("utf-8") for c in contents]
    if done:
        chunks.append(b"data: [DONE]\n")
    return chunks


def noise_image(width: int, height: int, seed: int = 7) -> Image.Image:
    """Deterministic RGB noise so every pixel position is distinguishable."""
    rnd = random.Random(seed)
    raw = rnd.randbytes(width * height * 3)
    return Image.frombytes("RGB", (width, height), raw)


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class ChunkedStream(httpx.AsyncByteStream):
    """Async body that yields the given chunks exactly as split."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


class FakeProvider:
    """httpx MockTransport handler standing in for the upstream world.

    ``POST`` requests answer with the configured event stream (or an error
    status); ``GET`` requests serve bytes registered in ``images``.
    """

    def __init__(self) -> None:
        self.chunks: list[bytes] = sse_chunks("![sheet](", SHEET_URL, ")")
        self.status = 200
        self.error_body = ""
        self.images: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            data = self.images.get(str(request.url))
            if data is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=data, headers={"Content-Type": "image/png"})
        if self.status >= 400:
            return httpx.Response(self.status, text=self.error_body)
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            stream=ChunkedStream(self.chunks),
        )

    @property
    def chat_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config() -> StickerSheetConfig:
    """Configuration with known secrets and a fake upstream URL.

    Returns:
        StickerSheetConfig instance for testing
    """
    return StickerSheetConfig(
        access_password="let-me-in",
        gemini_api_key="sk-test",
        api_base_url="https://upstream.test",
        model_id="test-model",
        _env_file=None,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def mock_http(provider: FakeProvider) -> Generator[httpx.AsyncClient, None, None]:
    """AsyncClient whose every request is answered by ``provider``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def make_image() -> Callable[..., Image.Image]:
    return noise_image


@pytest.fixture
def reference_png() -> bytes:
    """A small valid PNG used as the uploaded reference photo."""
    return png_bytes(Image.new("RGB", (32, 32), color=(200, 120, 40)))


@pytest.fixture
def test_client(test_config: StickerSheetConfig, mock_http: httpx.AsyncClient) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with config and outbound HTTP overridden."""
    from stickersheet.api.main import app, get_config, get_http_client

    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_http_client] = lambda: mock_http
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
