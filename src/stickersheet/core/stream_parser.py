"""Server-sent event frame parser for chat-completion streams.

The upstream provider answers with newline-delimited records::

    data: {"choices":[{"delta":{"content":"![a](http"}}]}
    data: {"choices":[{"delta":{"content":"://x/y.png)"}}]}
    data: [DONE]

Transport reads do not respect line boundaries, so :class:`StreamFrameParser`
keeps the unfinished tail of the last read in a buffer and only parses
complete lines.  Feeding the same bytes in any chunking yields the same
ordered deltas.

Parser states
-------------
``AWAITING_BYTES``
    The carry buffer is empty; the next chunk starts a fresh line.
``HAVE_BUFFER``
    A partial line is buffered and will be completed by a later chunk.

When the transport signals completion, :meth:`StreamFrameParser.close`
discards whatever is still buffered: a trailing line without a newline is
never parsed.

Malformed JSON after a ``data:`` prefix is skipped rather than raised.  Each
skip is logged at DEBUG and counted in ``skipped_lines`` so callers can
report how noisy a stream was.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


class ParserState(str, Enum):
    AWAITING_BYTES = "awaiting_bytes"
    HAVE_BUFFER = "have_buffer"


@dataclass(frozen=True)
class StreamEvent:
    """One parsed ``data:`` record.

    Attributes:
        delta: Text fragment carried by the record, or ``None`` when the
            envelope has no content delta.
        done: ``True`` only for the ``[DONE]`` sentinel.
    """

    delta: str | None = None
    done: bool = False


def extract_delta(envelope: object) -> str | None:
    """Return ``choices[0].delta.content`` from a decoded envelope.

    Any missing level, wrong type, or empty string yields ``None``.
    """
    if not isinstance(envelope, dict):
        return None
    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamFrameParser:
    """Incremental parser turning raw stream bytes into :class:`StreamEvent`s.

    One parser serves exactly one stream; create a new instance per request.

    Attributes:
        state: Current :class:`ParserState`.
        skipped_lines: Number of ``data:`` lines dropped as malformed JSON.
        done: Whether the ``[DONE]`` sentinel has been seen.
    """

    def __init__(self) -> None:
        # Incremental decoding keeps multi-byte characters split across
        # reads intact.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.state = ParserState.AWAITING_BYTES
        self.skipped_lines = 0
        self.done = False
        self._closed = False

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Consume one transport read and return the events it completed."""
        if self._closed:
            raise RuntimeError("StreamFrameParser is closed")

        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        # The last segment is incomplete (possibly empty) and carries over.
        self._buffer = lines.pop()
        self.state = ParserState.HAVE_BUFFER if self._buffer else ParserState.AWAITING_BYTES

        events: list[StreamEvent] = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def feed_deltas(self, chunk: bytes) -> list[str]:
        """Like :meth:`feed` but return only the non-empty text deltas."""
        return [event.delta for event in self.feed(chunk) if event.delta]

    def close(self) -> None:
        """Mark end of transport and discard any unterminated trailing line."""
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} unterminated characters at end of stream")
        self._buffer = ""
        self.state = ParserState.AWAITING_BYTES
        self._closed = True

    def _parse_line(self, line: str) -> StreamEvent | None:
        trimmed = line.strip()
        if not trimmed.startswith(DATA_PREFIX):
            return None
        if trimmed == DONE_SENTINEL:
            self.done = True
            return StreamEvent(done=True)

        payload = trimmed[len(DATA_PREFIX):]
        try:
            envelope = json.loads(payload)
        except json.JSONDecodeError:
            self.skipped_lines += 1
            logger.debug(f"Skipping malformed stream line: {payload[:80]!r}")
            return None
        return StreamEvent(delta=extract_delta(envelope))


async def aiter_deltas(
    chunks: AsyncIterable[bytes],
    parser: StreamFrameParser | None = None,
) -> AsyncIterator[str]:
    """Yield text deltas while pulling chunks from an async byte stream.

    Args:
        chunks: Async byte source, e.g. ``httpx.Response.aiter_bytes()``.
        parser: Optional parser to use, so the caller can inspect
            ``skipped_lines`` afterwards.  A fresh one is created otherwise.
    """
    parser = parser or StreamFrameParser()
    async for chunk in chunks:
        for delta in parser.feed_deltas(chunk):
            yield delta
    parser.close()
