"""framecrop - FastAPI application.

This module is the single entry point for the web service.  It defines the
application factory, the shared-token middleware, the two routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The service is stateless; every ``GET /`` runs one synchronous cycle:

1. The token middleware compares ``?token=`` with ``APP_ACCESS_TOKEN``.
2. The Immich settings are checked.
3. :class:`~framecrop.api.models.FrameQuery` parses the query string.
4. An asset id is chosen: the ``assetId`` override, or a pick from the
   album listing (see :mod:`framecrop.core.selection`).
5. The original is downloaded with :class:`~framecrop.core.immich.ImmichClient`.
6. :func:`~framecrop.core.imaging.render_frame` crops, darkens and encodes.

The route handler is a plain ``def`` so FastAPI runs it in its threadpool;
the blocking HTTP and image work never stalls the event loop.

Endpoints
---------
========  ============  ====================================
Method    Path          Purpose
========  ============  ====================================
GET       ``/``         Smart-cropped PNG of today's photo
GET       ``/healthz``  Liveness probe (no token required)
========  ============  ====================================

Usage
-----
CLI (installed entry point)::

    framecrop

Direct invocation::

    python -m framecrop.api.main
"""

from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from framecrop import __version__
from framecrop.api.models import FrameQuery
from framecrop.core.config import FramecropConfig, config
from framecrop.core.immich import ImmichClient
from framecrop.core.imaging import render_frame
from framecrop.core.selection import choose_asset_id, is_forced_asset_id, request_seed

logger = logging.getLogger(__name__)

# Paths served without a token.
PUBLIC_PATHS = frozenset({"/healthz"})


def _check_token(settings: FramecropConfig, provided: str | None) -> Response | None:
    """Return an error response if the request token is not acceptable.

    Args:
        settings: Active configuration.
        provided: Value of the ``token`` query parameter, if any.

    Returns:
        ``None`` when the token matches, otherwise a 500 (no secret
        configured) or 403 (wrong or missing token) plain-text response.
    """
    expected = settings.app_access_token
    if not expected:
        return PlainTextResponse("Server misconfigured: APP_ACCESS_TOKEN not set", status_code=500)
    if provided is None or not secrets.compare_digest(provided.encode(), expected.encode()):
        return PlainTextResponse("Forbidden: invalid or missing token", status_code=403)
    return None


def select_asset_id(client: ImmichClient, settings: FramecropConfig, query: FrameQuery) -> str:
    """Resolve the asset to render for a request.

    A forced ``assetId`` is used as-is without listing the album.
    Otherwise the album is fetched and an asset is picked according to
    ``date`` and ``settings.selection_mode``.
    """
    if is_forced_asset_id(query.asset_id):
        logger.info("Using forced asset %s.", query.asset_id)
        return query.asset_id

    seed = request_seed(query.date, settings.selection_mode, settings.seed_timezone)
    assets = client.get_album_assets(settings.immich_album_id)
    asset_id = choose_asset_id(
        assets,
        seed=seed,
        mode=settings.selection_mode,
        images_only=settings.images_only,
    )
    logger.info("Selected asset %s from %d album assets (seed=%r).", asset_id, len(assets), seed)
    return asset_id


def create_app(settings: FramecropConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to serve with.  Defaults to the global
            :data:`~framecrop.core.config.config` instance.

    Returns:
        A configured :class:`FastAPI` instance.
    """
    settings = settings if settings is not None else config

    app = FastAPI(
        title="framecrop",
        description="Serves a daily smart-cropped photo from an Immich album.",
        version=__version__,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def enforce_token(request: Request, call_next):
        if request.url.path not in PUBLIC_PATHS:
            rejection = _check_token(request.app.state.settings, request.query_params.get("token"))
            if rejection is not None:
                return rejection
        return await call_next(request)

    @app.get("/healthz")
    def healthz() -> dict:
        """Liveness probe."""
        return {"ok": True}

    @app.get("/")
    def frame(request: Request) -> Response:
        """Return the smart-cropped PNG for this request.

        Every failure (missing settings, invalid parameters, Immich errors,
        undecodable images) is logged and answered with a 500 plain-text
        body.

        Returns:
            200 ``image/png`` with ``Cache-Control: no-store`` and an
            ``X-Asset-Id`` header naming the rendered asset.
        """
        active: FramecropConfig = request.app.state.settings

        missing = active.missing_immich_settings()
        if missing:
            return PlainTextResponse(f"{missing[0]} not set. Configure via environment.", status_code=500)

        try:
            query = FrameQuery.from_query(request.query_params)
            with ImmichClient(
                active.immich_base_url,
                active.immich_api_key,
                timeout=active.immich_timeout,
            ) as client:
                asset_id = select_asset_id(client, active, query)
                original = client.download_original(asset_id)

            png = render_frame(
                original,
                query.width,
                query.height,
                query.darken,
                resize=active.resize_output,
                analysis_size=active.analysis_size,
                max_output_size=active.max_output_size,
            )
            # Header values must encode as latin-1.
            return Response(
                content=png,
                media_type="image/png",
                headers={"Cache-Control": "no-store", "X-Asset-Id": asset_id},
            )
        except Exception as exc:
            logger.exception("Failed to serve frame image.")
            return PlainTextResponse(f"Error fetching random image: {exc}", status_code=500)

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~framecrop.core.config.config`
    (``HOST``, ``PORT`` and ``LOG_LEVEL`` environment variables).  Defaults
    to ``0.0.0.0:3000``.

    This function is registered as the ``framecrop`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Server listening on http://%s:%d", config.host, config.port)

    uvicorn.run(
        "framecrop.api.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
