"""Producers for the three relay tiers: master, variant and segment."""

import logging
from typing import AsyncIterator

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from hls_relay.fetcher import UAFetcher
from hls_relay.m3u8_rewriter import M3U8Rewriter
from hls_relay.models import RewriteContext
from hls_relay.resolver import ManifestResolver

logger = logging.getLogger(__name__)

MPEGURL_CONTENT_TYPE = "application/vnd.apple.mpegurl"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,OPTIONS",
    "Access-Control-Allow-Headers": "Range,Accept,Content-Type",
}

# Connection-level headers owned by the ASGI server, never forwarded
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def _playlist_response(content: str) -> Response:
    return Response(content=content, media_type=MPEGURL_CONTENT_TYPE, headers=dict(CORS_HEADERS))


async def _iter_upstream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        await upstream.aclose()


class StreamProxy:
    """Builds relay responses for a handle, a variant playlist or a segment."""

    def __init__(self, fetcher: UAFetcher, resolver: ManifestResolver):
        self._fetcher = fetcher
        self._resolver = resolver

    async def rewrite_master(self, handle: str, request: Request) -> Response:
        """
        Resolve a handle's master playlist and route its variants through the relay.

        Raises:
            ManifestNotFoundError: If the handle has no discoverable manifest
        """
        manifest_url = await self._resolver.resolve(handle)
        manifest_text = await self._fetcher.fetch_text(manifest_url)

        context = RewriteContext.from_request_url(str(request.url), manifest_url)
        rewritten = M3U8Rewriter(context.proxy_base).rewrite_master(manifest_text)
        logger.info(f"[MASTER] Rewritten: handle={handle}, bytes={len(rewritten)}")

        return _playlist_response(rewritten)

    async def rewrite_variant(self, variant_url: str, request: Request) -> Response:
        """Fetch a variant playlist and route its segments through the relay."""
        playlist_text = await self._fetcher.fetch_text(variant_url)

        context = RewriteContext.from_request_url(str(request.url), variant_url)
        rewritten = M3U8Rewriter(context.proxy_base).rewrite_variant(playlist_text, context.source_url)
        logger.info(f"[VARIANT] Rewritten: url={variant_url}, bytes={len(rewritten)}")

        return _playlist_response(rewritten)

    async def proxy_segment(self, target_url: str, request: Request) -> StreamingResponse:
        """
        Stream a segment from upstream.

        The upstream status and headers are mirrored, including 4xx/5xx, so
        the client sees the real failure.
        """
        extra_headers = {}
        # Forward Range header for byte-range requests (required for #EXT-X-BYTERANGE)
        if "Range" in request.headers:
            extra_headers["Range"] = request.headers["Range"]

        upstream = await self._fetcher.open_stream(target_url, headers=extra_headers)
        logger.info(f"[SEGMENT] Upstream response: status={upstream.status_code}, url={target_url}")

        response = StreamingResponse(
            _iter_upstream(upstream),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = [
            (name.lower(), value)
            for name, value in upstream.headers.raw
            if name.lower().decode("latin-1") not in HOP_BY_HOP_HEADERS
        ]
        response.headers["Access-Control-Allow-Origin"] = "*"

        return response
