"""Key/value cache used for refresh tokens and request counters."""

from __future__ import annotations

import logging
import threading
import time
from functools import lru_cache
from typing import Protocol

from redis import Redis

from parley.config import get_settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Protocol describing cache operations we rely on."""

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a key/value pair with a time-to-live in seconds."""

    def get(self, key: str) -> str | None:
        """Retrieve a cached value if it exists and has not expired."""

    def delete(self, key: str) -> None:
        """Remove a cached entry, ignoring missing values."""

    def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter, starting its time-to-live on first use."""


class _InMemoryCache:
    """Process-local cache used when no Redis URL is configured.

    Expired entries are swept every ``sweep_every`` writes, so keys that are
    never read again (old rate-limit windows) do not pile up.
    """

    def __init__(self, sweep_every: int = 1000) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()
        self._sweep_every = max(sweep_every, 1)
        self._writes = 0

    def _after_write(self) -> None:
        # caller holds the lock
        self._writes += 1
        if self._writes < self._sweep_every:
            return
        self._writes = 0
        now = time.time()
        expired = [
            key for key, (_, expires_at) in self._store.items() if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._store[key]

    def _live_entry(self, key: str) -> tuple[str, float | None] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= time.time():
            self._store.pop(key, None)
            return None
        return entry

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at: float | None = None
        if ttl_seconds > 0:
            expires_at = time.time() + ttl_seconds
        with self._lock:
            self._store[key] = (value, expires_at)
            self._after_write()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                expires_at = time.time() + ttl_seconds if ttl_seconds > 0 else None
                count = 1
            else:
                count = int(entry[0]) + 1
                expires_at = entry[1]
            self._store[key] = (str(count), expires_at)
            self._after_write()
            return count


class _RedisCache:
    """Thin Redis wrapper adhering to :class:`CacheBackend`."""

    def __init__(self, url: str) -> None:
        self._client = Redis.from_url(url, decode_responses=True)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            self._client.setex(key, ttl_seconds, value)
        else:
            self._client.set(key, value)

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def incr(self, key: str, ttl_seconds: int) -> int:
        count = int(self._client.incr(key))
        if count == 1 and ttl_seconds > 0:
            self._client.expire(key, ttl_seconds)
        return count


@lru_cache(maxsize=1)
def get_cache() -> CacheBackend:
    """Return Redis when a cache URL is configured, an in-process store otherwise."""

    settings = get_settings()
    if settings.cache_url:
        logger.info("Using Redis cache backend")
        return _RedisCache(settings.cache_url)
    return _InMemoryCache()
