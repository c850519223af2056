"""Tests for stickersheet.core.pipeline — download and slice-and-zip helpers."""

from __future__ import annotations

import asyncio
import io
import zipfile

import pytest

from conftest import SHEET_URL, data_uri, noise_image, png_bytes
from stickersheet.core.errors import InvalidGridError, TransportError
from stickersheet.core.pipeline import build_sticker_archive, download_reference, pack_sheet
from stickersheet.core.slicer import GridSpec


class TestPackSheet:
    """Test the blocking slice-and-zip step."""

    def test_entries_for_grid(self, make_image):
        """One entry per tile in row-major order."""
        archive = pack_sheet(make_image(30, 20), GridSpec(rows=2, cols=3))
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert zf.namelist() == [f"sticker_{n:03d}.png" for n in range(1, 7)]


class TestBuildStickerArchive:
    """Test the async helper used by the API and CLI."""

    def test_event_loop_keeps_running_while_slicing(self):
        """Other tasks make progress while a large sheet is decoded and packed."""
        reference = data_uri(png_bytes(noise_image(1500, 1500)))
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0.005)

        async def run():
            task = asyncio.create_task(ticker())
            try:
                archive = await build_sticker_archive(reference, 10, 10)
                seen = ticks
            finally:
                task.cancel()
            return archive, seen

        archive, seen = asyncio.run(run())
        assert seen >= 1
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert len(zf.namelist()) == 100

    def test_bad_grid_checked_before_fetch(self, provider, mock_http):
        """An out-of-range grid fails without any download."""
        with pytest.raises(InvalidGridError):
            asyncio.run(build_sticker_archive(SHEET_URL, 0, 4, client=mock_http))
        assert provider.requests == []

    def test_download_cap_is_honoured(self, provider, mock_http, reference_png):
        """An explicit ``max_bytes`` overrides the configured default."""
        provider.images[SHEET_URL] = reference_png
        with pytest.raises(TransportError, match="maximum size"):
            asyncio.run(build_sticker_archive(SHEET_URL, 2, 2, client=mock_http, max_bytes=16))


class TestDownloadReference:
    """Test single-file downloads."""

    def test_download_cap_is_honoured(self, provider, mock_http, reference_png):
        """Remote downloads respect the caller's cap."""
        provider.images[SHEET_URL] = reference_png
        assert asyncio.run(download_reference(SHEET_URL, client=mock_http)) == reference_png
        with pytest.raises(TransportError):
            asyncio.run(download_reference(SHEET_URL, client=mock_http, max_bytes=16))
