"""Sticker Sheet Studio - reference photo to sticker sheet and sliced sticker pack."""

__version__ = "0.1.0"

from stickersheet.core.config import StickerSheetConfig, config

__all__ = [
    "StickerSheetConfig",
    "config",
]
