"""Image codec adapter.

Converts between in-memory image bytes, the base64 payload sent upstream,
and Pillow images ready for slicing.

An *image reference* is whatever the model produced: either a self-contained
``data:image/...;base64,...`` URI, which is decoded in-process, or a remote
``http(s)://`` URL, which is downloaded with httpx first.

Error mapping
-------------
- Malformed base64, unreadable image bytes, or a failed encode raise
  :class:`~stickersheet.core.errors.CodecError`.
- Network failures and non-success download statuses raise
  :class:`~stickersheet.core.errors.TransportError`.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image, UnidentifiedImageError

from stickersheet.core.config import config
from stickersheet.core.errors import CodecError, TransportError

logger = logging.getLogger(__name__)

# Pillow modes that PNG can store without conversion.
_PNG_SAFE_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}


def is_data_uri(reference: str) -> bool:
    """Return ``True`` for ``data:`` URIs."""
    return reference.strip().lower().startswith("data:")


def is_remote_url(reference: str) -> bool:
    """Return ``True`` for ``http://`` and ``https://`` references."""
    lowered = reference.strip().lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def open_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image.

    Args:
        data: Encoded image bytes (PNG, JPEG, WebP, ...).

    Returns:
        The decoded image.  Pixel data is loaded eagerly so the returned
        object does not depend on the source buffer.

    Raises:
        CodecError: If the bytes are empty or not a recognised image.
    """
    if not data:
        raise CodecError("Image data is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Image.DecompressionBombError as e:
        raise CodecError(f"Image is too large to decode: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CodecError(f"Could not decode image: {e}") from e
    return image


def sniff_mime_type(data: bytes) -> str:
    """Return the MIME type of encoded image bytes (e.g. ``image/png``)."""
    image = open_image(data)
    mime = Image.MIME.get(image.format or "")
    if not mime:
        raise CodecError(f"Unsupported image format: {image.format}")
    return mime


def encode_to_transport(data: bytes) -> str:
    """Encode image bytes as the base64 payload sent upstream.

    The bytes are validated as an image first so a corrupt upload fails here
    rather than as an opaque provider error.

    Raises:
        CodecError: If ``data`` is not a valid image.
    """
    open_image(data)
    return base64.b64encode(data).decode("ascii")


def strip_data_uri_prefix(value: str) -> str:
    """Return the payload part of a ``data:`` URI, or ``value`` unchanged."""
    head, sep, tail = value.partition(",")
    if sep and head.lower().startswith("data:"):
        return tail
    return value


def decode_base64_payload(payload: str) -> bytes:
    """Decode a raw or data-URI-prefixed base64 string into bytes."""
    cleaned = "".join(strip_data_uri_prefix(payload).split())
    padding = len(cleaned) % 4
    if padding:
        cleaned += "=" * (4 - padding)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"Malformed base64 image data: {e}") from e


def decode_data_uri(reference: str) -> bytes:
    """Decode a ``data:`` URI into its raw bytes.

    Both ``;base64`` and percent-encoded payloads are accepted.

    Raises:
        CodecError: If the URI has no payload separator or bad base64.
    """
    header, sep, payload = reference.strip().partition(",")
    if not sep or not header.lower().startswith("data:"):
        raise CodecError("Malformed data URI")
    if header.lower().endswith(";base64"):
        return decode_base64_payload(payload)
    return unquote_to_bytes(payload)


def encode_image(image: Image.Image, format: str = "PNG") -> bytes:
    """Encode a Pillow image into bytes.

    Images in modes PNG cannot hold (CMYK, YCbCr, ...) are converted to RGBA
    before a PNG encode.

    Raises:
        CodecError: If Pillow fails to encode the image.
    """
    buffer = io.BytesIO()
    try:
        if format.upper() == "PNG" and image.mode not in _PNG_SAFE_MODES:
            image = image.convert("RGBA")
        image.save(buffer, format=format)
    except (OSError, ValueError, KeyError) as e:
        raise CodecError(f"Could not encode image as {format}: {e}") from e
    return buffer.getvalue()


def _timeout() -> httpx.Timeout:
    return httpx.Timeout(config.request_timeout, connect=config.connect_timeout)


async def fetch_remote_image(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> bytes:
    """Download a remote image reference.

    Args:
        url: ``http(s)://`` URL of the generated image.
        client: Optional shared client; a short-lived one is created
            otherwise.
        max_bytes: Download cap, defaults to
            ``config.remote_image_max_bytes``.

    Returns:
        The downloaded bytes.

    Raises:
        TransportError: On network failure, non-success status, or when the
            body exceeds ``max_bytes``.
    """
    limit = max_bytes if max_bytes is not None else config.remote_image_max_bytes
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=_timeout(), follow_redirects=True)
    try:
        async with http.stream("GET", url, headers={"Accept": "image/*"}) as resp:
            if resp.is_error:
                raise TransportError(f"Image download failed with status {resp.status_code}")
            chunks: list[bytes] = []
            total = 0
            async for chunk in resp.aiter_bytes():
                total += len(chunk)
                if total > limit:
                    raise TransportError(f"Downloaded image exceeds maximum size of {limit} bytes")
                chunks.append(chunk)
    except httpx.HTTPError as e:
        raise TransportError(f"Could not fetch image: {e}") from e
    finally:
        if owns_client:
            await http.aclose()

    logger.debug(f"Fetched {total} bytes from {url}")
    return b"".join(chunks)


async def load_reference_bytes(
    reference: str,
    *,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> bytes:
    """Return the encoded bytes behind an image reference.

    ``max_bytes`` caps remote downloads (see :func:`fetch_remote_image`).

    Raises:
        CodecError: If the reference is neither a data URI nor a URL, or the
            data URI is malformed.
        TransportError: If a remote fetch fails.
    """
    if is_data_uri(reference):
        return decode_data_uri(reference)
    if is_remote_url(reference):
        return await fetch_remote_image(reference.strip(), client=client, max_bytes=max_bytes)
    raise CodecError("Image reference must be a data URI or an http(s) URL")


async def decode_from_reference(
    reference: str,
    *,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> Image.Image:
    """Resolve an image reference into a decoded Pillow image.

    Decoding runs in a worker thread so the event loop keeps serving other
    requests.
    """
    data = await load_reference_bytes(reference, client=client, max_bytes=max_bytes)
    return await asyncio.to_thread(open_image, data)
