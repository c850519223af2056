"""Zip packaging of sliced tiles and download file naming.

Tile entries are named ``sticker_001.png``, ``sticker_002.png``, ... by
1-based row-major index.  Three digits cover the largest 10x10 grid, so
lexicographic order of the names equals generation order.
"""

from __future__ import annotations

import io
import logging
import time
import zipfile
from collections.abc import Sequence

from stickersheet.core.errors import PackagingError
from stickersheet.core.slicer import Tile

logger = logging.getLogger(__name__)

TILE_NAME_TEMPLATE = "sticker_{number:03d}.{ext}"
ARCHIVE_NAME_TEMPLATE = "stickers-pack-{stamp}.zip"
SHEET_NAME_TEMPLATE = "sticker-sheet-{stamp}.png"


def tile_filename(index: int, ext: str = "png") -> str:
    """Archive entry name for the tile at row-major ``index`` (0-based)."""
    return TILE_NAME_TEMPLATE.format(number=index + 1, ext=ext)


def _stamp(now: float | None) -> int:
    return int((time.time() if now is None else now) * 1000)


def archive_filename(now: float | None = None) -> str:
    """Download name for a tile archive, qualified by a millisecond timestamp."""
    return ARCHIVE_NAME_TEMPLATE.format(stamp=_stamp(now))


def sheet_filename(now: float | None = None) -> str:
    """Download name for a single generated sheet."""
    return SHEET_NAME_TEMPLATE.format(stamp=_stamp(now))


def pack_tiles(tiles: Sequence[Tile], ext: str = "png") -> bytes:
    """Bundle tiles into an in-memory zip archive.

    Args:
        tiles: Tiles in row-major order.
        ext: File extension for the entries.

    Returns:
        The archive bytes.

    Raises:
        PackagingError: If the archive cannot be written.
    """
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for tile in sorted(tiles, key=lambda t: t.index):
                archive.writestr(tile_filename(tile.index, ext), tile.encoded_bytes)
    except (OSError, ValueError, TypeError, zipfile.BadZipFile) as e:
        raise PackagingError(f"Could not build archive: {e}") from e

    data = buffer.getvalue()
    logger.info(f"Packed {len(tiles)} tiles into {len(data)} byte archive")
    return data
