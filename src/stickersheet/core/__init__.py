"""Core generation, stream assembly and slicing components.

Architecture Overview
---------------------
Leaf-first:

1. **Configuration** (config.py) - Pydantic Settings, ``STICKERSHEET_`` prefix.
2. **Errors** (errors.py) - one exception class per failure kind.
3. **Codec** (codec.py) - base64 / data URI / remote URL <-> Pillow images.
4. **Stream parser** (stream_parser.py) - chunk-boundary-safe SSE framing.
5. **Extractor** (extractor.py) - delta accumulation and image lookup.
6. **Transports** (transport.py) - upstream provider and gateway clients.
7. **Orchestrator** (orchestrator.py) - request -> image reference.
8. **Slicer / packager** (slicer.py, packager.py) - grid tiles -> zip.
9. **Pipeline** (pipeline.py) - post-generation download and pack helpers.

Usage Example
-------------
    import httpx
    from stickersheet.core import config, generate, build_sticker_archive
    from stickersheet.core.transport import GatewayTransport

    async with httpx.AsyncClient(timeout=None) as client:
        transport = GatewayTransport(config.server_url, client)
        reference = await generate(photo, "image/png", "sticker-pack", "secret", transport=transport)
        archive = await build_sticker_archive(reference, rows=4, cols=6, client=client)
"""

from stickersheet.core.config import StickerSheetConfig, config
from stickersheet.core.errors import (
    AuthError,
    CodecError,
    ExtractionError,
    InvalidGridError,
    PackagingError,
    ServerConfigError,
    StickerSheetError,
    TransportError,
    UpstreamError,
)
from stickersheet.core.instructions import GenerationMode
from stickersheet.core.orchestrator import generate
from stickersheet.core.pipeline import build_sticker_archive, download_reference

__all__ = [
    "AuthError",
    "CodecError",
    "ExtractionError",
    "GenerationMode",
    "InvalidGridError",
    "PackagingError",
    "ServerConfigError",
    "StickerSheetConfig",
    "StickerSheetError",
    "TransportError",
    "UpstreamError",
    "build_sticker_archive",
    "config",
    "download_reference",
    "generate",
]
