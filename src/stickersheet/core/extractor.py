"""Response assembly and image-reference extraction.

Deltas from the stream parser are concatenated in arrival order into one
body.  Once the stream ends the body is searched for the generated image:

1. a markdown image link ``![alt](URL)`` - the URL is returned;
2. otherwise a body that, once trimmed, starts with ``http`` or
   ``data:image`` - the trimmed body is returned as-is;
3. otherwise :class:`~stickersheet.core.errors.ExtractionError`.

An empty body fails immediately.
"""

from __future__ import annotations

import re

from stickersheet.core.errors import ExtractionError

MARKDOWN_IMAGE_RE = re.compile(r"!\[.*?\]\((.*?)\)")


def extract_image_reference(content: str) -> str:
    """Locate the image reference in a fully assembled response.

    Args:
        content: Concatenated response text.

    Returns:
        A remote URL or a ``data:image`` URI.

    Raises:
        ExtractionError: If the content is empty or contains no image.
    """
    if not content:
        raise ExtractionError("The API returned empty content")

    match = MARKDOWN_IMAGE_RE.search(content)
    if match and match.group(1):
        return match.group(1)

    trimmed = content.strip()
    if trimmed.startswith("http") or trimmed.startswith("data:image"):
        return trimmed

    raise ExtractionError(
        "No image detected in response. Make sure the model returns an image link or base64 data."
    )


class ContentAccumulator:
    """Ordered buffer of response deltas for a single generation call."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, delta: str) -> None:
        self._parts.append(delta)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)

    def extract(self) -> str:
        """Run :func:`extract_image_reference` on the accumulated text."""
        return extract_image_reference(self.text)
