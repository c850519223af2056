"""End-to-end tests: gateway client -> API server -> mocked provider -> slicing.

The command-line side talks to the real FastAPI app through
``httpx.ASGITransport``; the app's own outbound client is the FakeProvider
mock, so the whole generate-then-slice flow runs in process.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
from collections.abc import Generator

import httpx
import pytest
from PIL import Image

from conftest import SHEET_URL, png_bytes, sse_chunks
from stickersheet.api.main import app, get_config, get_http_client
from stickersheet.core.errors import AuthError, ExtractionError, UpstreamError
from stickersheet.core.orchestrator import generate
from stickersheet.core.pipeline import build_sticker_archive, download_reference
from stickersheet.core.transport import GatewayTransport


@pytest.fixture
def served_app(test_config, mock_http) -> Generator[None, None, None]:
    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_http_client] = lambda: mock_http
    try:
        yield
    finally:
        app.dependency_overrides.clear()


def _run(coro_factory):
    async def run():
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as gateway_client:
            transport = GatewayTransport("http://testserver", gateway_client)
            return await coro_factory(transport)

    return asyncio.run(run())


class TestGenerateThenSlice:
    """Full flow from reference photo to sticker zip."""

    def test_sticker_pack_flow(self, served_app, provider, mock_http, reference_png):
        """A generated 1200x1800 sheet slices into 24 named tiles."""
        provider.images[SHEET_URL] = png_bytes(Image.new("RGB", (1200, 1800), color=(10, 200, 90)))

        async def flow(transport):
            reference = await generate(reference_png, "image/png", "sticker-pack", "let-me-in", transport=transport)
            archive = await build_sticker_archive(reference, 6, 4, client=mock_http)
            return reference, archive

        reference, archive = _run(flow)
        assert reference == SHEET_URL
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            names = zf.namelist()
            assert len(names) == 24
            assert names == [f"sticker_{n:03d}.png" for n in range(1, 25)]
            for name in names:
                with Image.open(io.BytesIO(zf.read(name))) as tile:
                    assert tile.width <= 300 and tile.height <= 300

    def test_christmas_hat_single_download(self, served_app, provider, mock_http, reference_png):
        """The single-image mode downloads the sheet as-is."""
        hat = png_bytes(Image.new("RGB", (64, 64), color=(200, 0, 0)))
        provider.chunks = sse_chunks("![hat](https://cdn.test/hat.png)")
        provider.images["https://cdn.test/hat.png"] = hat

        async def flow(transport):
            reference = await generate(reference_png, "image/png", "christmas-hat", "let-me-in", transport=transport)
            return await download_reference(reference, client=mock_http)

        assert _run(flow) == hat
        assert "Christmas hat" in provider.chat_requests[0].content.decode("utf-8")


class TestGatewayErrors:
    """Server-side failures arrive as typed errors on the client."""

    def test_wrong_password(self, served_app, provider, reference_png):
        """A bad password is AuthError and the provider is never called."""
        with pytest.raises(AuthError):
            _run(lambda t: generate(reference_png, "image/png", "sticker-pack", "nope", transport=t))
        assert provider.requests == []

    def test_upstream_failure(self, served_app, provider, reference_png):
        """An upstream status is relayed with its details."""
        provider.status = 429
        provider.error_body = "quota exceeded"
        with pytest.raises(UpstreamError) as excinfo:
            _run(lambda t: generate(reference_png, "image/png", "sticker-pack", "let-me-in", transport=t))
        assert excinfo.value.status == 429
        assert excinfo.value.body == "quota exceeded"

    def test_no_image_in_response(self, served_app, provider, reference_png):
        """A text-only stream fails extraction on the client side."""
        provider.chunks = sse_chunks("Sorry, ", "I cannot help with that.")
        with pytest.raises(ExtractionError):
            _run(lambda t: generate(reference_png, "image/png", "sticker-pack", "let-me-in", transport=t))
