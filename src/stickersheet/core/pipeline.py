"""End-to-end helpers that run after a successful generation.

A generated image reference is either downloaded as-is (single sheet) or
decoded, sliced into a grid and packed into a zip (sticker pack).

Decoding, cropping, tile encoding and zip compression are CPU-bound, so the
async helpers hand them to a worker thread with :func:`asyncio.to_thread`.
The event loop keeps relaying generation streams while a sheet is sliced.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from PIL import Image

from stickersheet.core.codec import decode_from_reference, load_reference_bytes
from stickersheet.core.packager import pack_tiles
from stickersheet.core.slicer import GridSpec, slice_image

logger = logging.getLogger(__name__)


async def download_reference(
    reference: str,
    *,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> bytes:
    """Return the bytes of a generated image for a single-file download."""
    return await load_reference_bytes(reference, client=client, max_bytes=max_bytes)


def pack_sheet(image: Image.Image, grid: GridSpec) -> bytes:
    """Slice a decoded sheet and zip the tiles (blocking)."""
    tiles = slice_image(image, grid.rows, grid.cols)
    return pack_tiles(tiles)


async def build_sticker_archive(
    reference: str,
    rows: int,
    cols: int,
    *,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> bytes:
    """Decode ``reference``, slice it into ``rows`` x ``cols`` and zip the tiles.

    The grid is validated before the reference is resolved, so a bad grid
    never triggers a download.

    Raises:
        InvalidGridError: Grid out of range or larger than the image.
        CodecError: Reference or a tile could not be decoded/encoded.
        TransportError: A remote reference could not be fetched.
        PackagingError: The archive could not be written.
    """
    grid = GridSpec(rows=rows, cols=cols)
    image = await decode_from_reference(reference, client=client, max_bytes=max_bytes)
    logger.debug(f"Decoded reference image {image.width}x{image.height} mode={image.mode}")
    return await asyncio.to_thread(pack_sheet, image, grid)
