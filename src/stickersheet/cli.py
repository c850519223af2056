"""Command-line caller for Sticker Sheet Studio.

Subcommands
-----------
generate
    Send a reference photo for generation and save the resulting sheet.
    ``--slice`` additionally cuts it into a grid and saves the zip.
slice
    Cut an existing sheet (file path, data URI or URL) into a zip.

Examples::

    stickersheet-cli generate photo.png --password secret --slice
    stickersheet-cli generate photo.png --mode christmas-hat --direct
    stickersheet-cli slice sticker-sheet.png --rows 6 --cols 4

By default ``generate`` talks to a running server at
``STICKERSHEET_SERVER_URL``; ``--direct`` calls the provider itself using the
local ``STICKERSHEET_*`` secrets.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import httpx

from stickersheet.core.codec import is_data_uri, is_remote_url, open_image
from stickersheet.core.config import GRID_MAX, GRID_MIN, StickerSheetConfig, config
from stickersheet.core.errors import StickerSheetError
from stickersheet.core.instructions import GenerationMode
from stickersheet.core.orchestrator import generate
from stickersheet.core.packager import archive_filename, sheet_filename
from stickersheet.core.pipeline import build_sticker_archive, download_reference, pack_sheet
from stickersheet.core.slicer import GridSpec
from stickersheet.core.transport import GatewayTransport, Transport, UpstreamTransport, build_timeout

logger = logging.getLogger(__name__)


def _guess_mime(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "image/png"


def _grid_from_args(args: argparse.Namespace) -> GridSpec:
    # Out-of-range values are pulled into range like the UI sliders do.
    return GridSpec.clamped(args.rows, args.cols)


def _build_transport(args: argparse.Namespace, settings: StickerSheetConfig, client: httpx.AsyncClient) -> Transport:
    if args.direct:
        return UpstreamTransport(settings, client)
    return GatewayTransport(args.server or settings.server_url, client, timeout=build_timeout(settings))


async def _run_generate(args: argparse.Namespace, settings: StickerSheetConfig) -> list[Path]:
    photo = Path(args.image)
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    password = args.password if args.password is not None else (settings.access_password or "")

    written: list[Path] = []
    async with httpx.AsyncClient(timeout=build_timeout(settings), follow_redirects=True) as client:
        reference = await generate(
            photo.read_bytes(),
            _guess_mime(photo),
            args.mode,
            password,
            transport=_build_transport(args, settings, client),
        )
        logger.info(f"Generated image reference: {reference[:80]}")

        limit = settings.remote_image_max_bytes
        sheet_path = out_dir / sheet_filename()
        sheet_path.write_bytes(await download_reference(reference, client=client, max_bytes=limit))
        written.append(sheet_path)

        if args.slice:
            grid = _grid_from_args(args)
            archive_path = out_dir / archive_filename()
            archive = await build_sticker_archive(reference, grid.rows, grid.cols, client=client, max_bytes=limit)
            archive_path.write_bytes(archive)
            written.append(archive_path)
    return written


async def _run_slice(args: argparse.Namespace, settings: StickerSheetConfig) -> list[Path]:
    grid = _grid_from_args(args)
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    archive_path = out_dir / archive_filename()

    if is_data_uri(args.image) or is_remote_url(args.image):
        async with httpx.AsyncClient(timeout=build_timeout(settings), follow_redirects=True) as client:
            archive = await build_sticker_archive(
                args.image, grid.rows, grid.cols, client=client, max_bytes=settings.remote_image_max_bytes
            )
    else:
        image = open_image(Path(args.image).read_bytes())
        archive = pack_sheet(image, grid)

    archive_path.write_bytes(archive)
    return [archive_path]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stickersheet-cli", description="Generate and slice sticker sheets.")
    parser.add_argument("--log-level", default=None, help="Override STICKERSHEET_LOG_LEVEL")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_grid_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--rows", type=int, default=config.default_grid_rows, help=f"Grid rows ({GRID_MIN}-{GRID_MAX})")
        p.add_argument("--cols", type=int, default=config.default_grid_cols, help=f"Grid columns ({GRID_MIN}-{GRID_MAX})")
        p.add_argument("--out", default=".", help="Output directory")

    pgen = sub.add_parser("generate", help="Generate a sticker sheet from a reference photo")
    pgen.add_argument("image", help="Path to the reference photo")
    pgen.add_argument("--mode", default=GenerationMode.STICKER_PACK.value, choices=[m.value for m in GenerationMode])
    pgen.add_argument("--password", default=None, help="Access password (defaults to STICKERSHEET_ACCESS_PASSWORD)")
    pgen.add_argument("--server", default=None, help="Gateway URL (defaults to STICKERSHEET_SERVER_URL)")
    pgen.add_argument("--direct", action="store_true", help="Call the upstream provider directly")
    pgen.add_argument("--slice", action="store_true", help="Also slice the sheet into a zip")
    add_grid_args(pgen)

    pslice = sub.add_parser("slice", help="Slice an existing sheet into a zip")
    pslice.add_argument("image", help="Sheet file path, data URI or http(s) URL")
    add_grid_args(pslice)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    runner = _run_generate if args.cmd == "generate" else _run_slice
    try:
        written = asyncio.run(runner(args, config))
    except StickerSheetError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for path in written:
        print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
