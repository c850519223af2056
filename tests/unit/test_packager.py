"""Tests for stickersheet.core.packager — zip packaging and download names."""

from __future__ import annotations

import io
import re
import zipfile

import pytest

from stickersheet.core.errors import PackagingError
from stickersheet.core.packager import archive_filename, pack_tiles, sheet_filename, tile_filename
from stickersheet.core.slicer import Tile, slice_image


def _names(archive: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return zf.namelist()


class TestTileNames:
    """Test deterministic entry naming."""

    def test_zero_padded(self):
        """Names are 1-based and padded to three digits."""
        assert tile_filename(0) == "sticker_001.png"
        assert tile_filename(99) == "sticker_100.png"

    def test_lexicographic_equals_generation_order(self):
        """Sorting names reproduces index order for the largest grid."""
        names = [tile_filename(i) for i in range(100)]
        assert sorted(names) == names


class TestPackTiles:
    """Test archive construction."""

    def test_entries_match_tiles(self, make_image):
        """Every tile appears once, with its bytes, in row-major order."""
        tiles = slice_image(make_image(40, 30), 3, 4)
        archive = pack_tiles(tiles)
        names = _names(archive)
        assert len(names) == 12
        assert sorted(names) == names
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            for tile, name in zip(tiles, names):
                assert zf.read(name) == tile.encoded_bytes

    def test_input_order_does_not_matter(self, make_image):
        """Tiles are written by index even if passed shuffled."""
        tiles = slice_image(make_image(20, 20), 2, 2)
        assert _names(pack_tiles(list(reversed(tiles)))) == _names(pack_tiles(tiles))

    def test_large_grid(self, make_image):
        """A 10x10 grid packs 100 entries in order."""
        names = _names(pack_tiles(slice_image(make_image(50, 50), 10, 10)))
        assert len(names) == 100
        assert names[0] == "sticker_001.png"
        assert names[-1] == "sticker_100.png"

    def test_write_failure_raises_packaging_error(self):
        """A tile with unusable bytes surfaces as PackagingError."""
        bad = Tile(index=0, row=0, col=0, origin_x=0, origin_y=0, width=1, height=1, encoded_bytes=None)  # type: ignore[arg-type]
        with pytest.raises(PackagingError):
            pack_tiles([bad])


class TestDownloadNames:
    """Test timestamp-qualified download names."""

    def test_archive_filename(self):
        """Archive names embed the millisecond timestamp."""
        assert archive_filename(now=1700000000.123) == "stickers-pack-1700000000123.zip"

    def test_sheet_filename(self):
        """Sheet names embed the millisecond timestamp."""
        assert sheet_filename(now=1.5) == "sticker-sheet-1500.png"

    def test_default_uses_current_time(self):
        """Without an explicit time a numeric stamp is still produced."""
        assert re.fullmatch(r"stickers-pack-\d+\.zip", archive_filename())
