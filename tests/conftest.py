"""Shared pytest fixtures for framecrop tests."""

from __future__ import annotations

import io
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from framecrop.api.main import create_app
from framecrop.core.config import FramecropConfig
from framecrop.core.errors import UpstreamError

TEST_TOKEN = "secret-token"
ASSET_IDS = [
    "11111111-aaaa-4aaa-8aaa-000000000001",
    "22222222-bbbb-4bbb-8bbb-000000000002",
    "33333333-cccc-4ccc-8ccc-000000000003",
]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config() -> FramecropConfig:
    """Create a fully configured FramecropConfig that ignores the local .env.

    Returns:
        FramecropConfig instance for testing
    """
    return FramecropConfig(
        _env_file=None,
        immich_base_url="http://immich.test",
        immich_api_key="test-api-key",
        immich_album_id="album-0001",
        app_access_token=TEST_TOKEN,
        seed_timezone="Europe/Berlin",
        selection_mode="daily",
        images_only=True,
        resize_output=False,
        analysis_size=64,
    )


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Factory producing encoded images.

    Returns:
        Callable ``(size, color=(200, 120, 40), fmt="JPEG", orientation=None)``
        returning the encoded bytes.  ``orientation`` sets the EXIF
        Orientation tag.
    """

    def _make(
        size: tuple[int, int],
        color: tuple[int, int, int] = (200, 120, 40),
        fmt: str = "JPEG",
        orientation: int | None = None,
    ) -> bytes:
        image = Image.new("RGB", size, color=color)
        buffer = io.BytesIO()
        if orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = orientation
            image.save(buffer, format=fmt, exif=exif)
        else:
            image.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


class FakeImmichClient:
    """In-memory stand-in for :class:`framecrop.core.immich.ImmichClient`.

    Attributes:
        assets: Album listing returned by :meth:`get_album_assets`.
        originals: Mapping of asset id to original bytes.
        calls: Log of ``(method, argument)`` tuples.
    """

    def __init__(self, assets: list[dict], originals: dict[str, bytes]) -> None:
        self.assets = assets
        self.originals = originals
        self.calls: list[tuple[str, str]] = []
        self.init_args: tuple | None = None
        self.closed = False

    def __call__(self, base_url: str, api_key: str, timeout: float = 30.0):
        self.init_args = (base_url, api_key, timeout)
        return self

    def __enter__(self) -> FakeImmichClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True

    def get_album_assets(self, album_id: str) -> list[dict]:
        self.calls.append(("get_album_assets", album_id))
        return self.assets

    def download_original(self, asset_id: str) -> bytes:
        self.calls.append(("download_original", asset_id))
        if asset_id not in self.originals:
            raise UpstreamError(
                "Failed to fetch asset original: 404 Not Found - {}",
                status_code=404,
            )
        return self.originals[asset_id]


@pytest.fixture
def fake_immich(monkeypatch, make_image_bytes) -> FakeImmichClient:
    """Patch the API's Immich client with an in-memory album of three photos."""
    fake = FakeImmichClient(
        assets=[{"id": asset_id, "type": "IMAGE"} for asset_id in ASSET_IDS],
        originals={asset_id: make_image_bytes((320, 200)) for asset_id in ASSET_IDS},
    )
    monkeypatch.setattr("framecrop.api.main.ImmichClient", fake)
    return fake


@pytest.fixture
def test_client(test_config: FramecropConfig, fake_immich: FakeImmichClient) -> TestClient:
    """TestClient for an app wired to ``test_config`` and the fake album."""
    return TestClient(create_app(test_config))
