"""Integration tests for framecrop.api.main - FastAPI endpoints.

All tests use the FastAPI TestClient with the in-memory Immich fake from
``conftest.py`` so no network access occurs.  Tests cover:

- ``GET /healthz`` - liveness without a token.
- Token middleware - 403 and misconfiguration 500.
- ``GET /`` - image response, selection rules, darken, and every error path.
"""

from __future__ import annotations

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from framecrop.api.main import create_app
from framecrop.core.config import FramecropConfig
from tests.conftest import ASSET_IDS, TEST_TOKEN


def _frame_params(**overrides) -> dict:
    """Build a valid frame query with optional overrides."""
    params = {"width": "160", "height": "100", "token": TEST_TOKEN}
    params.update(overrides)
    return {key: value for key, value in params.items() if value is not None}


def _settings(test_config: FramecropConfig, **overrides) -> FramecropConfig:
    return test_config.model_copy(update=overrides)


# ---------------------------------------------------------------------------
# Health and token tests.
# ---------------------------------------------------------------------------


class TestHealthz:
    """Test GET /healthz - liveness."""

    def test_healthz_without_token(self, test_client):
        resp = test_client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_healthz_when_token_unset(self, test_config, fake_immich):
        client = TestClient(create_app(_settings(test_config, app_access_token="")))
        assert client.get("/healthz").status_code == 200


class TestTokenMiddleware:
    """Test the shared-secret check."""

    def test_missing_token_is_forbidden(self, test_client, fake_immich):
        resp = test_client.get("/", params=_frame_params(token=None))
        assert resp.status_code == 403
        assert resp.text == "Forbidden: invalid or missing token"
        assert fake_immich.calls == []

    def test_wrong_token_is_forbidden(self, test_client):
        resp = test_client.get("/", params=_frame_params(token="nope"))
        assert resp.status_code == 403

    def test_unset_secret_is_a_server_error(self, test_config, fake_immich):
        client = TestClient(create_app(_settings(test_config, app_access_token="")))
        resp = client.get("/", params=_frame_params())
        assert resp.status_code == 500
        assert resp.text == "Server misconfigured: APP_ACCESS_TOKEN not set"

    def test_unknown_paths_also_require_token(self, test_client):
        assert test_client.get("/docs").status_code == 403


# ---------------------------------------------------------------------------
# Frame endpoint tests.
# ---------------------------------------------------------------------------


class TestFrame:
    """Test GET / - the cropped image."""

    def test_returns_png(self, test_client):
        resp = test_client.get("/", params=_frame_params())
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["cache-control"] == "no-store"
        assert resp.content.startswith(b"\x89PNG")

    def test_output_has_requested_aspect(self, test_client):
        # Originals are 320x200; 16:10 request keeps the whole frame.
        resp = test_client.get("/", params=_frame_params(width="800", height="480"))
        image = Image.open(io.BytesIO(resp.content))
        assert image.size == (320, 192)

    def test_resize_output(self, test_config, fake_immich):
        client = TestClient(create_app(_settings(test_config, resize_output=True)))
        resp = client.get("/", params=_frame_params(width="80", height="60"))
        assert Image.open(io.BytesIO(resp.content)).size == (80, 60)

    def test_date_seed_selects_asset(self, test_client, fake_immich):
        # hash_seed("2024-01-01") % 3 == 2
        resp = test_client.get("/", params=_frame_params(date="2024-01-01"))
        assert resp.status_code == 200
        assert resp.headers["x-asset-id"] == ASSET_IDS[2]
        assert fake_immich.calls == [
            ("get_album_assets", "album-0001"),
            ("download_original", ASSET_IDS[2]),
        ]

    def test_same_date_same_asset(self, test_client):
        first = test_client.get("/", params=_frame_params(date="2024-05-17"))
        second = test_client.get("/", params=_frame_params(date="2024-05-17"))
        assert first.headers["x-asset-id"] == second.headers["x-asset-id"]

    def test_forced_asset_skips_album(self, test_client, fake_immich):
        resp = test_client.get("/", params=_frame_params(assetId=ASSET_IDS[0]))
        assert resp.status_code == 200
        assert resp.headers["x-asset-id"] == ASSET_IDS[0]
        assert fake_immich.calls == [("download_original", ASSET_IDS[0])]

    def test_short_forced_asset_is_ignored(self, test_client, fake_immich):
        test_client.get("/", params=_frame_params(assetId="short", date="2024-01-01"))
        assert fake_immich.calls[0] == ("get_album_assets", "album-0001")

    def test_random_mode(self, test_config, fake_immich):
        client = TestClient(create_app(_settings(test_config, selection_mode="random")))
        resp = client.get("/", params=_frame_params())
        assert resp.status_code == 200
        assert resp.headers["x-asset-id"] in ASSET_IDS

    def test_client_built_from_settings(self, test_client, fake_immich):
        test_client.get("/", params=_frame_params())
        assert fake_immich.init_args == ("http://immich.test", "test-api-key", 30.0)
        assert fake_immich.closed is True

    def test_darken(self, test_client, fake_immich, make_image_bytes):
        for asset_id in ASSET_IDS:
            fake_immich.originals[asset_id] = make_image_bytes((64, 64), color=(255, 255, 255))
        resp = test_client.get("/", params=_frame_params(width="1", height="1", darken="100"))
        image = Image.open(io.BytesIO(resp.content)).convert("RGB")
        assert image.getpixel((0, 0)) == (0, 0, 0)


class TestFrameErrors:
    """Test GET / failure paths - all plain-text 500s."""

    @pytest.mark.parametrize(
        ("override", "name"),
        [
            ({"immich_api_key": ""}, "IMMICH_API_KEY"),
            ({"immich_api_key": "<PUT_API_KEY_HERE>"}, "IMMICH_API_KEY"),
            ({"immich_album_id": ""}, "IMMICH_ALBUM_ID"),
            ({"immich_base_url": ""}, "IMMICH_BASE_URL"),
        ],
    )
    def test_missing_immich_settings(self, test_config, fake_immich, override, name):
        client = TestClient(create_app(_settings(test_config, **override)))
        resp = client.get("/", params=_frame_params())
        assert resp.status_code == 500
        assert resp.text == f"{name} not set. Configure via environment."
        assert fake_immich.calls == []

    @pytest.mark.parametrize("params", [{"width": None}, {"height": "0"}, {"width": "wide"}])
    def test_invalid_dimensions(self, test_client, fake_immich, params):
        resp = test_client.get("/", params=_frame_params(**params))
        assert resp.status_code == 500
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.text == (
            "Error fetching random image: Both width and height query params must be positive integers"
        )
        assert fake_immich.calls == []

    def test_empty_album(self, test_client, fake_immich):
        fake_immich.assets = []
        resp = test_client.get("/", params=_frame_params())
        assert resp.status_code == 500
        assert "Album has no assets" in resp.text

    def test_upstream_download_failure(self, test_client, fake_immich):
        resp = test_client.get("/", params=_frame_params(assetId="99999999-dead-beef-0000-000000000000"))
        assert resp.status_code == 500
        assert resp.text.startswith("Error fetching random image: Failed to fetch asset original: 404")

    def test_unreadable_image(self, test_client, fake_immich):
        fake_immich.originals[ASSET_IDS[0]] = b"not an image"
        resp = test_client.get("/", params=_frame_params(assetId=ASSET_IDS[0]))
        assert resp.status_code == 500
        assert resp.text.startswith("Error fetching random image: Unable to decode image")

    def test_asset_id_outside_latin1_is_a_plain_error(self, test_client, fake_immich, make_image_bytes):
        asset_id = "фото-0000-0000-0001"
        fake_immich.originals[asset_id] = make_image_bytes((64, 64))
        resp = test_client.get("/", params=_frame_params(assetId=asset_id))
        assert resp.status_code == 500
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.text.startswith("Error fetching random image:")

    def test_resize_above_limit(self, test_config, fake_immich):
        settings = _settings(test_config, resize_output=True, max_output_size=1000)
        client = TestClient(create_app(settings))
        resp = client.get("/", params=_frame_params(width="200000", height="200000"))
        assert resp.status_code == 500
        assert resp.text == (
            "Error fetching random image: Requested size exceeds the maximum of 1000 pixels per side"
        )
