"""Cache backend implementations.

Provides:
- Cache: Abstract base class for custom backends
- MemoryCache: In-process cache with per-entry expiry (default)
- RedisCache: Redis-backed cache for sharing entries between processes

Backends are addressed by CacheKey (segment + id) and take TTLs in
milliseconds.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any

from ceych.cache.keys import CacheKey
from ceych.errors import BackendError, CacheTimeoutError


@dataclass
class CacheEntry:
    """A stored item and the time it was written."""

    item: Any
    stored_at: float  # Unix timestamp
    ttl_ms: int | None = None  # None = no expiration

    @property
    def expires_at(self) -> float | None:
        if self.ttl_ms is None:
            return None
        return self.stored_at + self.ttl_ms / 1000

    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class Cache(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True once started and until stopped."""

    @abstractmethod
    def start(self) -> None:
        """Start the backend. Calling it on a started backend is harmless."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the backend; it reports not-ready afterwards."""

    @abstractmethod
    async def get(self, key: CacheKey) -> CacheEntry | None:
        """Get the entry stored at key, or None."""

    @abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl_ms: int) -> None:
        """Store value at key for ttl_ms milliseconds."""

    @abstractmethod
    async def drop(self, key: CacheKey) -> None:
        """Remove key. Missing keys are not an error."""

    async def close(self) -> None:
        """Release connections held by the backend."""
        self.stop()


class MemoryCache(Cache):
    """In-memory cache with TTL support.

    Thread-safe implementation suitable for single-process deployments.
    Performs lazy cleanup of expired entries on access. Stopping the cache
    discards its contents.

    Args:
        max_size: Maximum number of entries (default 10000)
        cleanup_interval: Cleanup expired entries every N operations (default 100)
    """

    def __init__(self, max_size: int = 10000, cleanup_interval: int = 100):
        self._cache: dict[tuple[str, str], CacheEntry] = {}
        self._lock = Lock()
        self._max_size = max_size
        self._cleanup_interval = cleanup_interval
        self._operation_count = 0
        self._ready = False

    def is_ready(self) -> bool:
        return self._ready

    def start(self) -> None:
        self._ready = True

    def stop(self) -> None:
        self._ready = False
        with self._lock:
            self._cache.clear()

    def _check_ready(self) -> None:
        if not self._ready:
            raise BackendError("Memory cache is not started")

    async def get(self, key: CacheKey) -> CacheEntry | None:
        self._check_ready()
        self._maybe_cleanup()

        with self._lock:
            entry = self._cache.get((key.segment, key.id))
            if entry is None:
                return None

            if entry.is_expired():
                del self._cache[(key.segment, key.id)]
                return None

            return entry

    async def set(self, key: CacheKey, value: Any, ttl_ms: int) -> None:
        self._check_ready()
        self._maybe_cleanup()

        cache_key = (key.segment, key.id)
        with self._lock:
            # Evict oldest if at capacity
            if len(self._cache) >= self._max_size and cache_key not in self._cache:
                self._evict_oldest()

            self._cache[cache_key] = CacheEntry(item=value, stored_at=time.time(), ttl_ms=ttl_ms)

    async def drop(self, key: CacheKey) -> None:
        self._check_ready()
        with self._lock:
            self._cache.pop((key.segment, key.id), None)

    def clear(self) -> None:
        """Remove every entry in every segment."""
        with self._lock:
            self._cache.clear()

    def _maybe_cleanup(self) -> None:
        """Periodically clean up expired entries."""
        self._operation_count += 1
        if self._operation_count >= self._cleanup_interval:
            self._operation_count = 0
            self._cleanup_expired()

    def _cleanup_expired(self) -> None:
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
            for key in expired_keys:
                del self._cache[key]

    def _evict_oldest(self) -> None:
        """Evict oldest entry (FIFO). Must be called with lock held."""
        if self._cache:
            oldest_key = next(iter(self._cache))
            del self._cache[oldest_key]

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._cache)


def _redis_timeout_errors() -> tuple[type[BaseException], ...]:
    from redis.exceptions import TimeoutError as RedisTimeoutError

    return (RedisTimeoutError, TimeoutError)


class RedisCache(Cache):
    """Redis-backed cache for distributed deployments.

    Requires redis package: pip install ceych[redis]

    Entries are stored as JSON, so cached values must be JSON serializable and
    tuples come back as lists.

    Args:
        url: Redis URL (default: redis://localhost:6379/0)
        prefix: Key prefix for namespacing (default: "ceych:")
        client: Pre-built ``redis.asyncio.Redis`` client; skips URL connection
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "ceych:",
        client: Any = None,
    ):
        self._url = url
        self._prefix = prefix
        self._client = client
        self._ready = False

    def is_ready(self) -> bool:
        return self._ready

    def start(self) -> None:
        if self._client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError:
                raise ImportError(
                    "Redis package not installed. Install with: pip install ceych[redis]"
                )
            self._client = aioredis.from_url(self._url)
        self._ready = True

    def stop(self) -> None:
        self._ready = False

    async def close(self) -> None:
        self.stop()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _make_key(self, key: CacheKey) -> str:
        return f"{self._prefix}{key.segment}:{key.id}"

    def _require_client(self) -> Any:
        if not self._ready or self._client is None:
            raise BackendError("Redis cache is not started")
        return self._client

    async def get(self, key: CacheKey) -> CacheEntry | None:
        client = self._require_client()
        try:
            data = await client.get(self._make_key(key))
        except _redis_timeout_errors() as e:
            raise CacheTimeoutError(
                f"Redis GET timed out: {e}", segment=key.segment, key_id=key.id
            ) from e

        if data is None:
            return None
        return CacheEntry(**json.loads(data))

    async def set(self, key: CacheKey, value: Any, ttl_ms: int) -> None:
        client = self._require_client()
        entry = CacheEntry(item=value, stored_at=time.time(), ttl_ms=ttl_ms)
        data = json.dumps(asdict(entry))

        try:
            await client.set(self._make_key(key), data, px=ttl_ms)
        except _redis_timeout_errors() as e:
            raise CacheTimeoutError(
                f"Redis SET timed out: {e}", segment=key.segment, key_id=key.id
            ) from e

    async def drop(self, key: CacheKey) -> None:
        client = self._require_client()
        await client.delete(self._make_key(key))
