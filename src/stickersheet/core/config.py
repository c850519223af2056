"""Configuration management for Sticker Sheet Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the STICKERSHEET_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (STICKERSHEET_* prefix)
2. .env file in the project root
3. Default values defined in StickerSheetConfig

Example .env file:
    STICKERSHEET_ACCESS_PASSWORD=let-me-in
    STICKERSHEET_GEMINI_API_KEY=sk-...
    STICKERSHEET_API_BASE_URL=https://my-proxy.example.com/v1
    STICKERSHEET_MODEL_ID=gemini-2.0-flash-exp

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from stickersheet.core.config import config

    print(config.api_base_url)
    print(config.default_grid_rows, config.default_grid_cols)

Secrets
-------
``access_password`` and ``gemini_api_key`` default to ``None``.  A missing
value is not a startup error: the server reports it per request as a
``ServerConfigError`` (HTTP 500), so the process can still serve
``/api/config`` and ``/api/slice`` without credentials.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

GRID_MIN = 1
GRID_MAX = 10


class StickerSheetConfig(BaseSettings):
    """Main configuration for Sticker Sheet Studio.

    Attributes
    ----------
    Server-side secrets:
        access_password : str | None
            Password every generation request must present
        gemini_api_key : str | None
            Bearer credential injected into upstream requests

    Upstream:
        api_base_url : str
            Base URL of the chat-completions provider
        model_id : str
            Model name sent in the chat-completions payload
        request_timeout : float | None
            Read timeout for streamed calls (None waits forever)
        connect_timeout : float
            Connection timeout for every outbound call
        remote_image_max_bytes : int
            Download cap when a generated image is a remote URL

    Slicing:
        default_grid_rows : int
            Default grid rows offered to callers (1-10)
        default_grid_cols : int
            Default grid columns offered to callers (1-10)

    Server / client:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        server_url : str
            Where command-line callers reach the gateway
        log_level : str
            Root logging level for the server and CLI
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STICKERSHEET_",
        case_sensitive=False,
    )

    # Server-side secrets
    access_password: Optional[str] = Field(
        default=None,
        description="Shared password checked on every generation request",
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Upstream API key sent as a bearer token",
    )

    # Upstream provider
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Chat-completions base URL (/v1/chat/completions is appended as needed)",
    )
    model_id: str = Field(
        default="gemini-2.0-flash-exp",
        description="Model identifier sent to the upstream provider",
    )
    request_timeout: Optional[float] = Field(
        default=None,
        description="Read timeout in seconds for streamed calls (None = wait indefinitely)",
        gt=0,
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Connection timeout in seconds",
        gt=0,
    )
    remote_image_max_bytes: int = Field(
        default=20 * 1024 * 1024,
        description="Maximum size of a remote image download",
        ge=1,
    )

    # Slicing defaults (4x6 sticker sheet layout)
    default_grid_rows: int = Field(default=4, ge=GRID_MIN, le=GRID_MAX)
    default_grid_cols: int = Field(default=6, ge=GRID_MIN, le=GRID_MAX)

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    server_url: str = Field(
        default="http://127.0.0.1:7860",
        description="Gateway URL used by the command-line client",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level name (DEBUG, INFO, WARNING, ...)",
    )


# Global configuration instance
# Loads values from environment variables (STICKERSHEET_* prefix) and .env file.
config = StickerSheetConfig()
