"""Grid slicing of a sticker sheet into individual tiles.

Tiles are produced row-major, so tile ``i`` sits at ``row = i // cols``,
``col = i % cols``.

Tile geometry
-------------
Every column except the last is ``floor(W / cols)`` pixels wide; the last
column takes what remains, ``W - floor(W / cols) * (cols - 1)``.  Rows follow
the same rule with ``H``.  The tiles therefore cover the sheet exactly, with
no gap and no overlap, and only the last row/column may be larger - by at
most ``rows - 1`` / ``cols - 1`` pixels.  The remainder is deliberately not
spread across tiles.

Every tile is encoded on its own.  If any encode fails the whole slice fails
with :class:`~stickersheet.core.errors.CodecError`; no partial result is
returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from stickersheet.core.codec import encode_image
from stickersheet.core.config import GRID_MAX, GRID_MIN
from stickersheet.core.errors import InvalidGridError

logger = logging.getLogger(__name__)


def _clamp(value: int) -> int:
    return max(GRID_MIN, min(GRID_MAX, int(value)))


@dataclass(frozen=True)
class GridSpec:
    """Row and column counts for a slice, each within 1-10."""

    rows: int
    cols: int

    def __post_init__(self) -> None:
        for name, value in (("rows", self.rows), ("cols", self.cols)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidGridError(f"{name} must be an integer")
            if not GRID_MIN <= value <= GRID_MAX:
                raise InvalidGridError(f"{name} must be between {GRID_MIN} and {GRID_MAX}, got {value}")

    @classmethod
    def clamped(cls, rows: int, cols: int) -> "GridSpec":
        """Build a grid from raw user input, clamping each value into range."""
        return cls(rows=_clamp(rows), cols=_clamp(cols))

    @property
    def count(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class TileBox:
    """Rectangle of one tile within the source image."""

    index: int
    row: int
    col: int
    origin_x: int
    origin_y: int
    width: int
    height: int

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Pillow crop box ``(left, upper, right, lower)``."""
        return (
            self.origin_x,
            self.origin_y,
            self.origin_x + self.width,
            self.origin_y + self.height,
        )


@dataclass(frozen=True)
class Tile:
    """One encoded tile."""

    index: int
    row: int
    col: int
    origin_x: int
    origin_y: int
    width: int
    height: int
    encoded_bytes: bytes


def _spans(total: int, parts: int) -> list[tuple[int, int]]:
    step = total // parts
    spans = [(i * step, step) for i in range(parts - 1)]
    spans.append((step * (parts - 1), total - step * (parts - 1)))
    return spans


def compute_tile_boxes(width: int, height: int, grid: GridSpec) -> list[TileBox]:
    """Compute the row-major tile rectangles for a ``width`` x ``height`` image.

    Raises:
        InvalidGridError: If the image has fewer pixels than rows/columns in
            either direction, which would produce zero-size tiles.
    """
    if width < grid.cols or height < grid.rows:
        raise InvalidGridError(
            f"A {width}x{height} image cannot be split into {grid.rows} rows and {grid.cols} columns"
        )

    boxes: list[TileBox] = []
    for row, (y, h) in enumerate(_spans(height, grid.rows)):
        for col, (x, w) in enumerate(_spans(width, grid.cols)):
            boxes.append(
                TileBox(
                    index=row * grid.cols + col,
                    row=row,
                    col=col,
                    origin_x=x,
                    origin_y=y,
                    width=w,
                    height=h,
                )
            )
    return boxes


def slice_image(image: Image.Image, rows: int, cols: int, *, format: str = "PNG") -> list[Tile]:
    """Split ``image`` into ``rows * cols`` independently encoded tiles.

    Args:
        image: Decoded source image.
        rows: Number of tile rows (1-10).
        cols: Number of tile columns (1-10).
        format: Pillow format name for each tile.

    Returns:
        Tiles in row-major order.

    Raises:
        InvalidGridError: Rows/cols out of range or larger than the image.
        CodecError: A tile failed to encode.
    """
    grid = GridSpec(rows=rows, cols=cols)
    boxes = compute_tile_boxes(image.width, image.height, grid)

    tiles = [
        Tile(
            index=b.index,
            row=b.row,
            col=b.col,
            origin_x=b.origin_x,
            origin_y=b.origin_y,
            width=b.width,
            height=b.height,
            encoded_bytes=encode_image(image.crop(b.box), format=format),
        )
        for b in boxes
    ]
    logger.info(f"Sliced {image.width}x{image.height} image into {len(tiles)} tiles ({grid.rows}x{grid.cols})")
    return tiles
