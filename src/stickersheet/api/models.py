"""Pydantic request models for the Sticker Sheet Studio API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Field names follow the camelCase wire contract used by the browser client
(``imageBase64``, ``mimeType``, ``imageReference``); Python code accesses
them through snake_case attributes.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` - the password, the reference photo
    and the generation mode.
DownloadRequest
    Payload for ``POST /api/download`` - a generated image reference to
    return as a single file.
SliceRequest
    Payload for ``POST /api/slice`` - a generated image reference and the
    grid to cut it into.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from stickersheet.core.config import GRID_MAX, GRID_MIN
from stickersheet.core.instructions import GenerationMode


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        password: Access password, compared with the server-held secret.
        image_base64: Base64-encoded reference photo without a data-URI
            prefix.
        mime_type: MIME type of the reference photo.
        mode: ``"sticker-pack"`` (default) or ``"christmas-hat"``.
    """

    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(
        default="",
        description="Access password checked against the server secret.",
    )
    image_base64: str = Field(
        ...,
        alias="imageBase64",
        min_length=1,
        description="Base64-encoded reference photo (no data: prefix).",
    )
    mime_type: str = Field(
        ...,
        alias="mimeType",
        description="MIME type of the reference photo, e.g. 'image/png'.",
    )
    mode: GenerationMode = Field(
        default=GenerationMode.STICKER_PACK,
        description="Generation mode: 'sticker-pack' or 'christmas-hat'.",
    )


class DownloadRequest(BaseModel):
    """Request body for the ``POST /api/download`` endpoint.

    Attributes:
        image_reference: Generated image as a data URI or http(s) URL.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_reference: str = Field(
        ...,
        alias="imageReference",
        min_length=1,
        description="Generated image reference (data URI or http(s) URL).",
    )


class SliceRequest(BaseModel):
    """Request body for the ``POST /api/slice`` endpoint.

    Attributes:
        image_reference: Generated image as a data URI or http(s) URL.
        rows: Number of tile rows (1-10).
        cols: Number of tile columns (1-10).
    """

    model_config = ConfigDict(populate_by_name=True)

    image_reference: str = Field(
        ...,
        alias="imageReference",
        min_length=1,
        description="Generated image reference (data URI or http(s) URL).",
    )
    rows: int = Field(
        default=4,
        ge=GRID_MIN,
        le=GRID_MAX,
        description="Number of tile rows (1-10).",
    )
    cols: int = Field(
        default=6,
        ge=GRID_MIN,
        le=GRID_MAX,
        description="Number of tile columns (1-10).",
    )
