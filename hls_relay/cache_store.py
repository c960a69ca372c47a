"""Thread-safe in-memory response cache store."""

import asyncio
import logging
import threading
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Optional, Protocol

from hls_relay.models import CacheEntry

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Key-value capability used by the cache-aside layer."""

    async def get(self, key: str) -> Optional[CacheEntry]: ...

    async def put(self, entry: CacheEntry) -> None: ...

    def cleanup_expired(self) -> int: ...

    def get_entry_count(self) -> int: ...

    def clear(self) -> None: ...


async def sweep_expired_entries(store: CacheStore, interval_seconds: float) -> None:
    """Release expired entries every interval until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.cleanup_expired()
        if removed:
            logger.debug(f"[CACHE] Swept {removed} expired entries")


class MemoryCacheStore:
    """In-memory TTL store bounded by entry count and total body bytes."""

    def __init__(self, max_entries: int = 2048, max_bytes: int = 256 * 1024 * 1024):
        """
        Initialize the store.

        Args:
            max_entries: Entries kept before eviction starts
            max_bytes: Sum of stored body sizes kept before eviction starts
        """
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_entries = max_entries
        self._max_bytes = max_bytes
        self._total_bytes = 0
        self._lock = threading.RLock()

    @property
    def total_bytes(self) -> int:
        """Sum of the body sizes currently held, expired entries included."""
        with self._lock:
            return self._total_bytes

    def _remove(self, key: str) -> None:
        """
        Remove an entry and release its byte count.

        Note: Must be called within a lock context.
        """
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_bytes -= len(entry.body)

    def _over_limit(self) -> bool:
        return len(self._entries) > self._max_entries or self._total_bytes > self._max_bytes

    async def get(self, key: str) -> Optional[CacheEntry]:
        """
        Retrieve a live entry by key.

        Args:
            key: Full request URL

        Returns:
            The stored entry, or None if absent or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.is_expired(datetime.now(timezone.utc)):
                # Expired entries are dropped on read
                self._remove(key)
                return None

            return entry

    async def put(self, entry: CacheEntry) -> None:
        """
        Store an entry, replacing any previous entry for the same key.

        Over either bound, expired entries go first, then the oldest writes.

        Args:
            entry: Entry to store
        """
        with self._lock:
            self._remove(entry.key)
            self._entries[entry.key] = entry
            self._total_bytes += len(entry.body)

            if self._over_limit():
                self.cleanup_expired()

            while self._over_limit() and self._entries:
                evicted_key = next(iter(self._entries))
                self._remove(evicted_key)
                logger.debug(f"[CACHE] Evicted oldest entry: {evicted_key}")

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = datetime.now(timezone.utc)

        with self._lock:
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                self._remove(key)

        return len(expired_keys)

    def get_entry_count(self) -> int:
        """Get the current number of live entries."""
        now = datetime.now(timezone.utc)
        with self._lock:
            return sum(1 for entry in self._entries.values() if not entry.is_expired(now))

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()
            self._total_bytes = 0
