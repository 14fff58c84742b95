"""Pydantic model for the frame query string.

FrameQuery
    Parsed form of ``GET /?width=&height=&darken=&date=&assetId=``.  It is
    validated from the raw query mapping rather than through FastAPI's
    parameter injection so that invalid input is reported the same way as
    every other failure of the endpoint (500 plain text) instead of a 422
    JSON body.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from framecrop.core.errors import ParameterError

# darken keeps its leading integer: "50.5" -> 50, "30%" -> 30.
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

DIMENSION_ERROR = "Both width and height query params must be positive integers"


class FrameQuery(BaseModel):
    """Query parameters for ``GET /``.

    Attributes:
        width: Requested output width in pixels (> 0).  Together with
            ``height`` it defines the crop's aspect ratio.
        height: Requested output height in pixels (> 0).
        darken: Target darkness 0..100.  Only the leading integer is read
            and it is clamped; values without one are ignored.
        date: Seed string for the daily pick; blank means "today".
        asset_id: Force a specific Immich asset (query name ``assetId``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    width: int = Field(..., gt=0, description="Requested output width in pixels.")
    height: int = Field(..., gt=0, description="Requested output height in pixels.")
    darken: int | None = Field(default=None, description="Target darkness 0..100.")
    date: str | None = Field(default=None, description="Seed string, e.g. '2024-05-01'.")
    asset_id: str | None = Field(
        default=None,
        alias="assetId",
        description="Asset id override; ids of 10 characters or fewer are ignored.",
    )

    @field_validator("width", "height", mode="before")
    @classmethod
    def _parse_dimension(cls, value):
        if isinstance(value, str):
            return int(value.strip())
        return value

    @field_validator("darken", mode="before")
    @classmethod
    def _parse_darken(cls, value):
        if value is None:
            return None
        match = _LEADING_INT.match(str(value))
        if match is None:
            return None
        return max(0, min(100, int(match.group(1))))

    @field_validator("date", mode="before")
    @classmethod
    def _strip_date(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> FrameQuery:
        """Validate a raw query mapping.

        Raises:
            ParameterError: If ``width`` or ``height`` is missing, not an
                integer, or not positive.
        """
        try:
            return cls.model_validate(dict(params))
        except ValidationError as exc:
            raise ParameterError(DIMENSION_ERROR) from exc
