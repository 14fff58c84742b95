"""Album asset selection.

Two strategies pick the asset shown on the frame:

- **Seeded** - a seed string (normally today's date) is hashed with djb2 and
  the hash modulo the album size is the index.  Every caller asking on the
  same day gets the same picture, and the picture changes at local midnight.
- **Random** - a uniform pick, for deployments that want a new image on
  every refresh.

A caller may also force a specific asset id, which bypasses the album
entirely (see :func:`is_forced_asset_id`).

The hash works on UTF-16 code units with 32-bit signed wrap-around so that
seeds map to the same index as the JavaScript frame clients that share
these albums.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime
from typing import Literal
from zoneinfo import ZoneInfo

from framecrop.core.errors import UpstreamError

DEFAULT_SEED = "default-seed"

# Forced asset ids shorter than this are ignored; Immich ids are UUIDs.
MIN_FORCED_ID_LENGTH = 11

_UINT32 = 0xFFFFFFFF


def date_seed(value: str | None, tz: str = "Europe/Berlin", now: datetime | None = None) -> str:
    """Return the seed string for a request.

    Args:
        value: The ``date`` query parameter, if any.
        tz: IANA timezone used to compute today's date.
        now: Override for the current instant (tests).

    Returns:
        ``value`` stripped of whitespace when non-blank, otherwise today's
        date in ``tz`` formatted ``YYYY-MM-DD``.
    """
    if value is not None and value.strip():
        return value.strip()
    current = now if now is not None else datetime.now(tz=ZoneInfo(tz))
    return current.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d")


def request_seed(
    value: str | None,
    mode: Literal["daily", "random"] = "daily",
    tz: str = "Europe/Berlin",
) -> str | None:
    """Return the seed for a request, or ``None`` for a uniform pick.

    An explicit ``date`` always seeds.  Without one, ``"daily"`` mode seeds
    with today's date and ``"random"`` mode does not seed at all.
    """
    if (value is None or not value.strip()) and mode == "random":
        return None
    return date_seed(value, tz)


def hash_seed(seed: str) -> int:
    """djb2 hash of ``seed`` folded to a non-negative int.

    >>> hash_seed("")
    5381
    >>> hash_seed("a")
    177670
    """
    units = seed.encode("utf-16-le")
    value = 5381
    for i in range(0, len(units), 2):
        code_unit = units[i] | (units[i + 1] << 8)
        value = (value * 33 + code_unit) & _UINT32
    if value & 0x80000000:
        value -= 1 << 32
    return abs(value)


def asset_identifier(asset: dict) -> str:
    """Return the id of an album asset, tolerating older response shapes."""
    identifier = asset.get("id") or asset.get("assetId") or asset.get("uuid")
    if not identifier:
        raise UpstreamError(f"Album asset has no id: {asset!r}")
    return str(identifier)


def eligible_assets(assets: Sequence[dict], images_only: bool = True) -> list[dict]:
    """Drop assets that cannot be rendered.

    Assets that do not report a ``type`` are kept, so older servers still
    work.
    """
    if not images_only:
        return list(assets)
    return [asset for asset in assets if asset.get("type", "IMAGE") == "IMAGE"]


def pick_seeded(assets: Sequence[dict], seed: str | None) -> dict:
    """Pick an asset deterministically from ``seed``."""
    if not assets:
        raise UpstreamError("Album has no assets or response format unexpected")
    index = hash_seed(seed or DEFAULT_SEED) % len(assets)
    return assets[index]


def pick_random(assets: Sequence[dict], rng: random.Random | None = None) -> dict:
    """Pick an asset uniformly at random."""
    if not assets:
        raise UpstreamError("Album has no assets or response format unexpected")
    return (rng or random).choice(assets)


def is_forced_asset_id(value: str | None) -> bool:
    """Return True when ``value`` looks like a usable asset id override."""
    return isinstance(value, str) and len(value) >= MIN_FORCED_ID_LENGTH


def choose_asset_id(
    assets: Sequence[dict],
    *,
    seed: str | None,
    mode: Literal["daily", "random"] = "daily",
    images_only: bool = True,
    rng: random.Random | None = None,
) -> str:
    """Select the asset id to render from an album listing.

    Args:
        assets: Asset objects as returned by Immich.
        seed: Seed string.  When ``None`` and ``mode`` is ``"random"`` the
            pick is uniform; otherwise the seed decides.
        mode: ``"daily"`` or ``"random"``.
        images_only: Ignore non-image assets before picking.
        rng: Random source for ``"random"`` mode.

    Returns:
        The chosen asset's id.

    Raises:
        UpstreamError: If no eligible asset remains or the pick has no id.
    """
    candidates = eligible_assets(assets, images_only=images_only)
    if seed is None and mode == "random":
        chosen = pick_random(candidates, rng=rng)
    else:
        chosen = pick_seeded(candidates, seed)
    return asset_identifier(chosen)
