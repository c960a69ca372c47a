"""Outbound HTTP fetches carrying a fixed browser identity."""

import logging
from typing import Optional

import httpx

from hls_relay.config import Settings

logger = logging.getLogger(__name__)


def create_http_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the pooled client shared by every upstream fetch."""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_keepalive_connections=settings.http_max_keepalive_connections,
            max_connections=settings.http_max_connections,
        ),
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        transport=transport,
    )


class UAFetcher:
    """Performs upstream requests so servers treat the relay as a desktop browser."""

    def __init__(self, client: httpx.AsyncClient, identity_headers: dict[str, str]):
        """
        Initialize the fetcher.

        Args:
            client: Shared async HTTP client
            identity_headers: User-Agent, Accept and Accept-Language sent on every call
        """
        self._client = client
        self._identity_headers = dict(identity_headers)

    def _build_headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = dict(self._identity_headers)
        if extra:
            headers.update(extra)
        return headers

    async def fetch_page(self, url: str) -> httpx.Response:
        """Fetch a page whatever its status; callers inspect the body."""
        logger.debug(f"[FETCH] GET {url}")
        return await self._client.get(url, headers=self._build_headers())

    async def fetch_text(self, url: str) -> str:
        """
        Fetch a text resource such as a playlist.

        Raises:
            httpx.HTTPStatusError: If upstream answers with 4xx/5xx
        """
        response = await self.fetch_page(url)
        response.raise_for_status()
        return response.text

    async def open_stream(self, url: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        """
        Start a streamed request. The caller owns the response and must close it.

        Args:
            url: Upstream URL
            headers: Extra request headers (e.g. Range)
        """
        logger.debug(f"[FETCH] GET {url} (streamed)")
        request = self._client.build_request("GET", url, headers=self._build_headers(headers))
        return await self._client.send(request, stream=True)
