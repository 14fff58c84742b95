"""Configuration management for framecrop.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables (no prefix, so the
variable names used by existing deployments keep working) or a ``.env`` file.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables
2. .env file in the working directory
3. Default values defined in FramecropConfig

Example .env file:
    IMMICH_BASE_URL=https://photos.example.com
    IMMICH_API_KEY=xxxxxxxx
    IMMICH_ALBUM_ID=6d1c2a8e-...
    APP_ACCESS_TOKEN=change-me
    PORT=3000

Global Configuration Instance
------------------------------
A global ``config`` instance is created at import time. Every field has a
default so that importing the package never fails; missing Immich settings
are reported per request instead (see :meth:`FramecropConfig.missing_immich_settings`).

Usage Example
-------------
    from framecrop.core.config import config

    print(config.immich_api_url)
    print(config.selection_mode)
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in sample configs that mean "not configured yet".
PLACEHOLDER_VALUES = frozenset({"<PUT_API_KEY_HERE>", "<PUT_ALBUM_ID_HERE>", "<PUT_BASE_URL_HERE>"})


class FramecropConfig(BaseSettings):
    """Main configuration for framecrop.

    Attributes
    ----------
    Immich Settings:
        immich_base_url : str
            Root URL of the Immich server, without the ``/api`` suffix
        immich_api_key : str
            API key sent in the ``x-api-key`` header
        immich_album_id : str
            Album the frame image is drawn from
        immich_timeout : float
            Timeout in seconds applied to every upstream call

    Access Control:
        app_access_token : str
            Shared secret that callers pass as the ``token`` query parameter

    Selection:
        seed_timezone : str
            IANA zone used to decide what "today" is for the daily seed
        selection_mode : Literal["daily", "random"]
            How an asset is picked when no ``date`` is supplied
        images_only : bool
            Skip videos and other non-image assets in the album

    Rendering:
        resize_output : bool
            Resize the crop to exactly the requested width and height
        analysis_size : int
            Longest side of the downscaled copy used for saliency analysis
        max_output_size : int
            Largest width or height accepted when ``resize_output`` is on

    Server:
        host : str
            Bind address
        port : int
            Bind port
        log_level : str
            Root logging level for the CLI entry point
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Immich settings
    immich_base_url: str = Field(
        default="",
        description="Immich server root URL (the /api prefix is added automatically)",
    )
    immich_api_key: str = Field(
        default="",
        description="Immich API key",
    )
    immich_album_id: str = Field(
        default="",
        description="Immich album ID to draw images from",
    )
    immich_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for each Immich request",
        gt=0,
    )

    # Access control
    app_access_token: str = Field(
        default="",
        description="Shared secret required in the token query parameter",
    )

    # Selection
    seed_timezone: str = Field(
        default="Europe/Berlin",
        description="Timezone used to compute today's date seed",
    )
    selection_mode: Literal["daily", "random"] = Field(
        default="daily",
        description="Pick by today's date (daily) or uniformly at random (random)",
    )
    images_only: bool = Field(
        default=True,
        description="Ignore album assets whose type is not IMAGE",
    )

    # Rendering
    resize_output: bool = Field(
        default=False,
        description="Resize the crop to exactly width x height",
    )
    analysis_size: int = Field(
        default=256,
        description="Longest side in pixels of the saliency analysis copy",
        ge=32,
        le=2048,
    )
    max_output_size: int = Field(
        default=8192,
        description="Largest requested width or height when resizing output",
        ge=1,
        le=65535,
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    port: int = Field(
        default=3000,
        description="Server port",
        ge=1,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level name (DEBUG, INFO, WARNING, ...)",
    )

    @property
    def immich_api_url(self) -> str:
        """Base URL of the Immich REST API (``<immich_base_url>/api``)."""
        return f"{self.immich_base_url.rstrip('/')}/api"

    def missing_immich_settings(self) -> list[str]:
        """Return the env names of Immich settings that are unset or placeholders.

        Returns:
            List of variable names in a stable order, empty when the service
            is ready to talk to Immich.
        """
        checks = (
            ("IMMICH_API_KEY", self.immich_api_key),
            ("IMMICH_ALBUM_ID", self.immich_album_id),
            ("IMMICH_BASE_URL", self.immich_base_url),
        )
        return [name for name, value in checks if not value.strip() or value.strip() in PLACEHOLDER_VALUES]


# Global configuration instance, loaded from the environment and .env file.
config = FramecropConfig()
