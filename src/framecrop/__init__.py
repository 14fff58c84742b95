"""framecrop - daily smart-cropped wallpapers from an Immich album."""

__version__ = "0.2.0"

from framecrop.core.config import FramecropConfig, config

__all__ = [
    "FramecropConfig",
    "config",
]
