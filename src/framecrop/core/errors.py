"""Exception hierarchy for framecrop.

Every failure raised by the core modules derives from :class:`FramecropError`
so the HTTP layer can report it uniformly.
"""

from __future__ import annotations


class FramecropError(Exception):
    """Base class for all framecrop errors."""


class ConfigurationError(FramecropError):
    """Raised when required settings are missing or unusable."""


class ParameterError(FramecropError):
    """Raised when request parameters fail validation."""


class UpstreamError(FramecropError):
    """Raised when the Immich server cannot be reached or answers with an error.

    Attributes:
        status_code: HTTP status returned by Immich, or ``None`` when the
            request never got a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImageProcessingError(FramecropError):
    """Raised when an image cannot be decoded, analysed or encoded."""
