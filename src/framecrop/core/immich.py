"""Minimal Immich REST client.

Only the two calls the frame service needs are implemented:

- ``GET /api/albums/{id}`` to list the assets of an album.
- ``GET /api/assets/{id}/original`` to download the original file.

Both authenticate with the ``x-api-key`` header.  Non-2xx answers and
transport failures are raised as :class:`~framecrop.core.errors.UpstreamError`
with the status line and response body in the message, so the caller can
pass them straight to the client.

Usage
-----
::

    with ImmichClient("https://photos.example.com", api_key) as client:
        assets = client.get_album_assets(album_id)
        data = client.download_original(assets[0]["id"])
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from framecrop.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class ImmichClient:
    """Thin wrapper around a :class:`requests.Session` for one Immich server.

    Attributes:
        api_url: Base URL of the REST API, ending in ``/api``.
        timeout: Timeout in seconds applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            base_url: Root URL of the Immich server, without ``/api``.
            api_key: Immich API key.
            timeout: Per-request timeout in seconds.
            session: Optional session to reuse.  A session passed in by the
                caller is not closed by :meth:`close`.
        """
        self.api_url = f"{base_url.rstrip('/')}/api"
        self.timeout = timeout
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"x-api-key": api_key})

    # -- Context management -------------------------------------------------

    def __enter__(self) -> ImmichClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session:
            self._session.close()

    # -- Public interface ---------------------------------------------------

    def get_album_assets(self, album_id: str) -> list[dict]:
        """Return the asset objects of an album.

        Args:
            album_id: Immich album identifier.

        Returns:
            The album's ``assets`` list (empty if the field is missing).

        Raises:
            UpstreamError: On transport failure, a non-2xx status, or a body
                that is not a JSON object.
        """
        url = f"{self.api_url}/albums/{quote(album_id, safe='')}"
        response = self._get(url, headers={"accept": "application/json"})
        self._raise_for_status(response, "Failed to fetch album assets")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(f"Album response is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            return []
        assets = data.get("assets") or []
        logger.debug("Album %s lists %d assets.", album_id, len(assets))
        return [asset for asset in assets if isinstance(asset, dict)]

    def download_original(self, asset_id: str) -> bytes:
        """Download the original file of an asset.

        Args:
            asset_id: Immich asset identifier.

        Returns:
            Raw file bytes as stored by Immich.

        Raises:
            UpstreamError: On transport failure or a non-2xx status.
        """
        url = f"{self.api_url}/assets/{quote(asset_id, safe='')}/original"
        response = self._get(url)
        self._raise_for_status(response, "Failed to fetch asset original")
        logger.debug("Downloaded asset %s (%d bytes).", asset_id, len(response.content))
        return response.content

    # -- Internals ----------------------------------------------------------

    def _get(self, url: str, headers: dict | None = None) -> requests.Response:
        try:
            return self._session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f"Request to {url} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: requests.Response, what: str) -> None:
        if response.ok:
            return
        raise UpstreamError(
            f"{what}: {response.status_code} {response.reason} - {response.text}",
            status_code=response.status_code,
        )
