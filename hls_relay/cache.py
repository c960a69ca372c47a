"""Cache-aside layer wrapping the playlist and segment producers."""

import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import StreamingResponse

from hls_relay.cache_store import CacheStore
from hls_relay.models import CacheEntry

logger = logging.getLogger(__name__)

Producer = Callable[[str, Request], Awaitable[Response]]


def _encode_headers(raw_headers: list[tuple[bytes, bytes]]) -> list[tuple[str, str]]:
    return [(name.decode("latin-1"), value.decode("latin-1")) for name, value in raw_headers]


def _decode_headers(headers: list[tuple[str, str]]) -> list[tuple[bytes, bytes]]:
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers]


class ResponseCache:
    """
    Serves repeated requests for the same URL from a cache store.

    The key is the full incoming request URL, which already encodes the tier
    and the upstream target. Only successful responses are stored, so a
    channel that was offline is retried on the next request.
    """

    def __init__(self, store: CacheStore):
        self._store = store

    @staticmethod
    def is_cacheable(status_code: int) -> bool:
        """Whether a producer result may be stored."""
        # Partial content depends on the Range header, which the key does not carry
        if status_code == status.HTTP_206_PARTIAL_CONTENT:
            return False
        return 200 <= status_code < 300

    async def cached(self, producer: Producer, producer_arg: str, ttl: int, request: Request) -> Response:
        """
        Return the stored response for this request URL, or produce and store one.

        Args:
            producer: Coroutine building the response on a miss
            producer_arg: First argument passed to the producer
            ttl: Tier TTL in seconds
            request: Incoming request

        Returns:
            Replayed or freshly produced response
        """
        key = str(request.url)

        entry = await self._store.get(key)
        if entry is not None:
            logger.debug(f"[CACHE] Hit: {key}")
            return self._replay(entry)

        logger.debug(f"[CACHE] Miss: {key}")
        response = await producer(producer_arg, request)

        if not self.is_cacheable(response.status_code):
            logger.debug(f"[CACHE] Not storing status={response.status_code}: {key}")
            return response

        response.headers["Cache-Control"] = f"public, max-age={ttl}"

        if isinstance(response, StreamingResponse):
            # Store once the body has fully streamed to the client
            response.body_iterator = self._store_when_complete(response.body_iterator, response, key, ttl)
        else:
            await self._store.put(self._make_entry(key, response, bytes(response.body), ttl))

        return response

    async def _store_when_complete(
        self, body: AsyncIterator, response: StreamingResponse, key: str, ttl: int
    ) -> AsyncIterator[bytes]:
        chunks: list[bytes] = []
        async for chunk in body:
            if isinstance(chunk, str):
                chunk = chunk.encode(response.charset)
            chunks.append(chunk)
            yield chunk

        await self._store.put(self._make_entry(key, response, b"".join(chunks), ttl))

    @staticmethod
    def _make_entry(key: str, response: Response, body: bytes, ttl: int) -> CacheEntry:
        now = datetime.now(timezone.utc)
        return CacheEntry(
            key=key,
            body=body,
            headers=_encode_headers(response.raw_headers),
            status=response.status_code,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )

    @staticmethod
    def _replay(entry: CacheEntry) -> Response:
        response = Response(content=entry.body, status_code=entry.status)
        raw_headers = _decode_headers(entry.headers)
        if not any(name.lower() == b"content-length" for name, _ in raw_headers):
            raw_headers.append((b"content-length", str(len(entry.body)).encode("latin-1")))
        response.raw_headers = raw_headers
        return response
