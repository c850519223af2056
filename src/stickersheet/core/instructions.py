"""Mode-specific instruction templates sent alongside the reference photo.

English instructions are used even for Chinese captions; they follow complex
layout requests more reliably than translated ones.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType


class GenerationMode(str, Enum):
    """What the model should produce from the reference photo."""

    STICKER_PACK = "sticker-pack"
    CHRISTMAS_HAT = "christmas-hat"


STICKER_PACK_INSTRUCTION = """
Generate a sticker sheet featuring a Chibi-style, LINE sticker-like character based on the input image.
The character should maintain key features like headwear from the original image.
Style: Hand-drawn color illustration.
Layout: 4x6 grid (24 stickers total).
Content: Various common chat expressions and fun memes.
Language: All text must be in Handwritten Simplified Chinese.
Do not just copy the original image. Create expressive, stylized stickers.
"""

CHRISTMAS_HAT_INSTRUCTION = """
Generate a single image based on the input image.
Add a Christmas hat to the character's head in the input image.
Ensure the hat matches the existing art style and lighting.
Return a single image.
Do not generate a sticker sheet or grid.
"""

INSTRUCTION_TEMPLATES = MappingProxyType(
    {
        GenerationMode.STICKER_PACK: STICKER_PACK_INSTRUCTION,
        GenerationMode.CHRISTMAS_HAT: CHRISTMAS_HAT_INSTRUCTION,
    }
)


def resolve_mode(mode: GenerationMode | str | None) -> GenerationMode:
    """Coerce a mode value, falling back to the sticker pack for unknown input."""
    if isinstance(mode, GenerationMode):
        return mode
    try:
        return GenerationMode(mode)
    except ValueError:
        return GenerationMode.STICKER_PACK


def get_instruction(mode: GenerationMode | str | None) -> str:
    """Return the instruction text for ``mode``."""
    return INSTRUCTION_TEMPLATES[resolve_mode(mode)]
