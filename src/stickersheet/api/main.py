"""Sticker Sheet Studio — FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** comes from :data:`~stickersheet.core.config.config`
  (``STICKERSHEET_*`` environment variables / ``.env``).
- **Generation** is proxied: the password is checked against the server-held
  secret, the multimodal chat-completions request is built and sent with the
  server's API key, and the upstream event stream is relayed unmodified as
  ``text/event-stream``.  Stream parsing happens on the caller's side.
- **Slicing** decodes a generated image reference, cuts it into a grid and
  returns a zip attachment.
- **Errors** raised by the core are typed
  (:class:`~stickersheet.core.errors.StickerSheetError`) and rendered by a
  single exception handler as ``{"error", "kind"[, "details"]}`` JSON with
  the matching HTTP status.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/health``                   Liveness probe
GET       ``/api/config``               Version, modes, grid defaults
POST      ``/api/generate``             Authenticate and relay the stream
POST      ``/api/download``             Resolve a reference to one file
POST      ``/api/slice``                Slice a sheet into a zip archive
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    stickersheet

Direct invocation::

    python -m stickersheet.api.main
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from stickersheet import __version__
from stickersheet.api.models import DownloadRequest, GenerateRequest, SliceRequest
from stickersheet.core.codec import sniff_mime_type
from stickersheet.core.config import GRID_MAX, GRID_MIN, StickerSheetConfig, config
from stickersheet.core.errors import StickerSheetError, UpstreamError
from stickersheet.core.instructions import GenerationMode
from stickersheet.core.packager import archive_filename, sheet_filename
from stickersheet.core.pipeline import build_sticker_archive, download_reference
from stickersheet.core.transport import GenerationRequest, UpstreamTransport, build_timeout

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared outbound HTTP client and close it on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.http_client = httpx.AsyncClient(timeout=build_timeout(config), follow_redirects=True)
    logger.info("HTTP client initialised.")

    yield

    await app.state.http_client.aclose()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Sticker Sheet Studio",
    description="Reference photo to sticker sheet generation, slicing and packaging.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so the frontend can be served from a different
# port during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config() -> StickerSheetConfig:
    """Return the active configuration (overridden in tests)."""
    return config


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the shared outbound client created by :func:`lifespan`."""
    return request.app.state.http_client


# ---------------------------------------------------------------------------
# Error handling.
# ---------------------------------------------------------------------------


@app.exception_handler(StickerSheetError)
async def handle_pipeline_error(request: Request, exc: StickerSheetError) -> JSONResponse:
    """Render a typed pipeline error as the JSON error envelope."""
    content = {"error": exc.message, "kind": type(exc).__name__}
    if isinstance(exc, UpstreamError):
        content["details"] = exc.body
    if exc.http_status >= 500:
        logger.error(f"{request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=content)


async def _relay(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield upstream body bytes unchanged, always closing the response."""
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    finally:
        await response.aclose()


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/api/config")
async def get_app_config(settings: StickerSheetConfig = Depends(get_config)) -> dict:
    """Return the settings the frontend needs to render its controls.

    Returns:
        Dictionary with keys ``version``, ``modes``, ``grid`` (defaults and
        limits) and ``model_id``.
    """
    return {
        "version": __version__,
        "modes": [mode.value for mode in GenerationMode],
        "model_id": settings.model_id,
        "grid": {
            "rows": settings.default_grid_rows,
            "cols": settings.default_grid_cols,
            "min": GRID_MIN,
            "max": GRID_MAX,
        },
    }


@app.post("/api/generate")
async def generate_sheet(
    req: GenerateRequest,
    settings: StickerSheetConfig = Depends(get_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> StreamingResponse:
    """Authenticate the caller and relay the upstream generation stream.

    This endpoint:

    1. Rejects with 500 when the access password or API key is not set.
    2. Rejects with 401 when ``password`` does not match.
    3. Sends the mode's instruction and the photo upstream with
       ``stream: true``.
    4. Relays the upstream byte stream as ``text/event-stream``.

    Raises:
        StickerSheetError: Rendered by :func:`handle_pipeline_error`.
    """
    transport = UpstreamTransport(settings, client)
    upstream = await transport.open_stream(
        GenerationRequest(
            image_base64=req.image_base64,
            mime_type=req.mime_type,
            mode=req.mode,
            credential=req.password,
        )
    )
    return StreamingResponse(
        _relay(upstream),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@app.post("/api/download")
async def download_sheet(
    req: DownloadRequest,
    settings: StickerSheetConfig = Depends(get_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Return a generated image as a single file attachment."""
    data = await download_reference(req.image_reference, client=client, max_bytes=settings.remote_image_max_bytes)
    media_type = await asyncio.to_thread(sniff_mime_type, data)
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{sheet_filename()}"'},
    )


@app.post("/api/slice")
async def slice_sheet(
    req: SliceRequest,
    settings: StickerSheetConfig = Depends(get_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Slice a generated sheet into a grid and return the tiles as a zip.

    Grid values outside 1-10 are rejected by request validation (422)
    before any image work happens.
    """
    archive = await build_sticker_archive(
        req.image_reference,
        req.rows,
        req.cols,
        client=client,
        max_bytes=settings.remote_image_max_bytes,
    )
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive_filename()}"'},
    )


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~stickersheet.core.config.config`
    (``STICKERSHEET_SERVER_HOST`` / ``STICKERSHEET_SERVER_PORT``).  Defaults
    to ``0.0.0.0:7860``.

    This function is registered as the ``stickersheet`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(level=config.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "stickersheet.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
