"""Generation request orchestration.

:func:`generate` is the single entry point a caller (API route, CLI, UI)
uses to turn a reference photo into an image reference:

1. Build a :class:`~stickersheet.core.transport.GenerationRequest`.
2. Open the response stream through a transport.  A non-success status
   fails immediately - no retry, no partial recovery.
3. Feed every transport read through a fresh
   :class:`~stickersheet.core.stream_parser.StreamFrameParser` into a fresh
   :class:`~stickersheet.core.extractor.ContentAccumulator`.
4. Extract the image reference from the assembled body.

Parser and accumulator live only for the duration of one call, so an
abandoned (cancelled) call leaves nothing behind; the response is always
closed in a ``finally`` block.
"""

from __future__ import annotations

import logging

from stickersheet.core.extractor import ContentAccumulator
from stickersheet.core.instructions import GenerationMode
from stickersheet.core.stream_parser import StreamFrameParser, aiter_deltas
from stickersheet.core.transport import GenerationRequest, Transport

logger = logging.getLogger(__name__)


async def run_generation(request: GenerationRequest, transport: Transport) -> str:
    """Drive one prepared request to a resolved image reference.

    Raises:
        AuthError: Credential rejected.
        ServerConfigError: Server is missing a secret or key.
        UpstreamError: Transport answered with a non-success status.
        TransportError: Network failure.
        ExtractionError: No image in the assembled response.
    """
    response = await transport.open_stream(request)

    parser = StreamFrameParser()
    accumulator = ContentAccumulator()
    try:
        async for delta in aiter_deltas(response.aiter_bytes(), parser):
            accumulator.append(delta)
    finally:
        await response.aclose()

    if parser.skipped_lines:
        logger.warning(f"Skipped {parser.skipped_lines} malformed stream line(s)")
    logger.info(f"Stream complete: {len(accumulator)} characters received")

    return accumulator.extract()


async def generate(
    image: bytes,
    mime_type: str,
    mode: GenerationMode | str,
    credential: str,
    *,
    transport: Transport,
) -> str:
    """Generate an image from a reference photo.

    Args:
        image: Raw bytes of the reference photo.
        mime_type: MIME type of ``image``.
        mode: ``"sticker-pack"`` or ``"christmas-hat"``.
        credential: Access password.
        transport: Where to send the request.

    Returns:
        The generated image as a remote URL or a ``data:image`` URI.

    Raises:
        CodecError: ``image`` is not a valid image.
        See :func:`run_generation` for the remaining error kinds.
    """
    request = GenerationRequest.from_image_bytes(image, mime_type, mode, credential)
    return await run_generation(request, transport)
