"""Main FastAPI application for the live HLS relay."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse

from hls_relay import __version__
from hls_relay.cache import ResponseCache
from hls_relay.cache_store import CacheStore, MemoryCacheStore, sweep_expired_entries
from hls_relay.config import Settings, settings
from hls_relay.exceptions import InvalidRequestError, ProxyError, UpstreamError
from hls_relay.fetcher import UAFetcher, create_http_client
from hls_relay.models import HealthResponse
from hls_relay.proxy import CORS_HEADERS, StreamProxy
from hls_relay.resolver import ManifestResolver

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PLAYLIST_EXTENSION = ".m3u8"


def create_app(
    app_settings: Settings = settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache_store: Optional[CacheStore] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        app_settings: Process configuration
        transport: Optional transport for the upstream client (tests inject a mock)
        cache_store: Optional store backing the response cache

    Returns:
        Configured FastAPI application
    """
    store = (
        cache_store
        if cache_store is not None
        else MemoryCacheStore(app_settings.cache_max_entries, app_settings.cache_max_bytes)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan (startup and shutdown)."""
        logger.info("Starting live HLS relay")
        http_client = create_http_client(app_settings, transport=transport)
        logger.info(f"HTTP client initialized with timeout={app_settings.http_timeout_seconds}s")

        fetcher = UAFetcher(http_client, app_settings.upstream_headers)
        resolver = ManifestResolver(fetcher, app_settings.upstream_origin)
        app.state.stream_proxy = StreamProxy(fetcher, resolver)
        app.state.response_cache = ResponseCache(store)
        app.state.cache_store = store

        sweeper = asyncio.create_task(
            sweep_expired_entries(store, app_settings.cache_sweep_interval_seconds)
        )

        yield

        # Shutdown
        logger.info("Shutting down live HLS relay")
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        store.clear()
        await http_client.aclose()
        logger.info("HTTP client closed")

    app = FastAPI(
        title="Live HLS Relay",
        description="Relay turning live video pages into proxied HLS playlists",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> PlainTextResponse:
        """Render relay errors as plain text."""
        return PlainTextResponse(
            content=exc.detail,
            status_code=exc.status_code,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health check",
        description="Health check endpoint",
    )
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            cache_entries=request.app.state.cache_store.get_entry_count(),
            version=__version__,
        )

    @app.options("/{path:path}", include_in_schema=False)
    async def preflight(path: str) -> Response:
        """Answer CORS preflight requests."""
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=dict(CORS_HEADERS))

    @app.api_route(
        "/{path:path}",
        methods=["GET", "HEAD"],
        summary="Relay HLS content",
        description="Serve the master playlist, a variant playlist or a segment for a handle",
    )
    async def relay(request: Request, path: str) -> Response:
        """
        Route a request to one of the three tiers.

        `url=` selects the segment tier, `variant=` the variant playlist tier,
        and a bare `/<handle>/<name>.m3u8` the master playlist tier.
        """
        parts = [part for part in path.split("/") if part]
        if len(parts) < 2:
            raise InvalidRequestError()

        handle, filename = parts[0], parts[1]
        if not filename.endswith(PLAYLIST_EXTENSION):
            raise InvalidRequestError("Only .m3u8 supported")

        stream_proxy: StreamProxy = request.app.state.stream_proxy
        response_cache: ResponseCache = request.app.state.response_cache
        params = request.query_params

        try:
            if "url" in params:
                return await response_cache.cached(
                    stream_proxy.proxy_segment,
                    params.getlist("url")[0],
                    app_settings.segment_ttl_seconds,
                    request,
                )

            if "variant" in params:
                return await response_cache.cached(
                    stream_proxy.rewrite_variant,
                    params.getlist("variant")[0],
                    app_settings.variant_ttl_seconds,
                    request,
                )

            return await response_cache.cached(
                stream_proxy.rewrite_master,
                handle,
                app_settings.master_ttl_seconds,
                request,
            )
        except ProxyError:
            raise
        except Exception as e:
            logger.error(f"[RELAY] Request failed: path={path}, error={e!r}")
            raise UpstreamError(str(e)) from e

    return app


app = create_app()
