"""Core functionality for framecrop.

- **config**: Pydantic Settings configuration (``FramecropConfig``)
- **immich**: Immich REST client (album listing, original download)
- **selection**: Date-seeded and random asset selection
- **cropping**: Aspect-fit arithmetic and saliency-guided crop placement
- **imaging**: Decoding, darkening and the end-to-end frame render
- **errors**: Exception hierarchy shared by all of the above
"""

from framecrop.core.config import FramecropConfig, config
from framecrop.core.errors import (
    ConfigurationError,
    FramecropError,
    ImageProcessingError,
    ParameterError,
    UpstreamError,
)

__all__ = [
    "ConfigurationError",
    "FramecropConfig",
    "FramecropError",
    "ImageProcessingError",
    "ParameterError",
    "UpstreamError",
    "config",
]
