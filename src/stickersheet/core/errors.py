"""Typed error kinds for the generation and slicing pipeline.

Every failure the core can report has its own exception class so callers can
recover per kind instead of matching message strings.  Each class carries the
HTTP status the API layer answers with; the message is meant to be shown to
the user as-is.
"""

from __future__ import annotations


class StickerSheetError(Exception):
    """Base class for all user-facing pipeline errors."""

    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(StickerSheetError):
    """The supplied password does not match the server-held secret."""

    http_status = 401


class ServerConfigError(StickerSheetError):
    """A required server setting (secret or upstream key) is missing."""

    http_status = 500


class UpstreamError(StickerSheetError):
    """The transport answered with a non-success status.

    Attributes:
        status: HTTP status code reported by the transport.
        body: Raw response body, kept for diagnostics.
    """

    def __init__(self, status: int, body: str, message: str | None = None) -> None:
        super().__init__(message or f"Upstream API Error: {status}")
        self.status = status
        self.body = body

    @property
    def http_status(self) -> int:  # type: ignore[override]
        return self.status


class CodecError(StickerSheetError):
    """Image bytes or an encoded reference could not be decoded or encoded."""

    http_status = 400


class ExtractionError(StickerSheetError):
    """The assembled response contained no recognisable image reference."""

    http_status = 502


class InvalidGridError(StickerSheetError):
    """Grid dimensions are outside the supported range for the image."""

    http_status = 400


class PackagingError(StickerSheetError):
    """The tile archive could not be built."""

    http_status = 500


class TransportError(StickerSheetError):
    """A network call failed before any HTTP status was received."""

    http_status = 502
