"""Configuration management for the PictureMe generation service.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the PICTUREME_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PICTUREME_* prefix)
2. .env file in the project root
3. Default values defined in PictureMeConfig

Example .env file:
    PICTUREME_API_KEY=...
    PICTUREME_MODEL_NAME=gemini-2.5-flash-image-preview
    PICTUREME_TRANSPORT_MAX_RETRIES=5
    PICTUREME_SCRIPT_FONT_PATH=fonts/Caveat-Bold.ttf

Scope
-----
Only the service layer (:mod:`pictureme.api.main`) reads this object.  The
core classes (transport, generation client, orchestrator, compositors) take
their tunables as explicit constructor arguments so they stay usable and
testable without any environment.

Usage Example
-------------
    from pictureme.core.config import config

    print(config.generate_url)
    print(config.generation_attempts)
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PictureMeConfig(BaseSettings):
    """Main configuration for the PictureMe generation service.

    Attributes
    ----------
    Remote Endpoint:
        api_base_url : str
            Base URL of the generative language API (no trailing slash)
        model_name : str
            Image-capable model used for every generation call
        api_key : str
            API key sent as the ``key`` query parameter (empty = none)
        request_timeout : float
            Per-request HTTP timeout in seconds

    Retry Budget:
        transport_max_retries : int
            Retries the transport performs on 429 / network failure
        transport_initial_backoff_ms : int
            First transport backoff; doubled after every retry
        generation_attempts : int
            Attempts the generation client makes per item
        generation_base_delay_ms : int
            Delay before the second attempt; doubled per attempt

    Rendering:
        script_font_path : Path | None
            TrueType font for labels and album titles (Caveat-like)
        sans_font_path : Path | None
            TrueType font for the footer credit lines (Inter-like)

    Server:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)

    Examples
    --------
        >>> custom = PictureMeConfig(api_key="test", generation_attempts=1)
        >>> custom.generate_url.endswith(":generateContent")
        True
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PICTUREME_",
        case_sensitive=False,
    )

    # Remote endpoint
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generative language API",
    )
    model_name: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Model used for image generation and style priming",
    )
    api_key: str = Field(
        default="",
        description="API key passed as the 'key' query parameter",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Per-request HTTP timeout in seconds",
        gt=0,
    )

    # Retry budget
    transport_max_retries: int = Field(default=5, ge=0, le=10)
    transport_initial_backoff_ms: int = Field(default=1000, ge=0)
    generation_attempts: int = Field(default=3, ge=1, le=10)
    generation_base_delay_ms: int = Field(default=2500, ge=0)

    # Rendering
    script_font_path: Path | None = Field(
        default=None,
        description="TrueType font for labels and titles (falls back to Pillow's default)",
    )
    sans_font_path: Path | None = Field(
        default=None,
        description="TrueType font for footer lines (falls back to Pillow's default)",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7870,
        description="Server port",
        ge=1024,
        le=65535,
    )

    @property
    def generate_url(self) -> str:
        """Full ``generateContent`` URL for the configured model."""
        return f"{self.api_base_url.rstrip('/')}/models/{self.model_name}:generateContent"


# Global configuration instance
# Loaded once at import time from PICTUREME_* environment variables and .env.
config = PictureMeConfig()
