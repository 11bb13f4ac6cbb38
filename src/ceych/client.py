"""Ceych client: wraps functions so their results are cached.

Usage:
    from ceych import Ceych

    ceych = Ceych(default_ttl=60)

    async def fetch_user(user_id: str) -> dict:
        ...

    cached_fetch_user = ceych.wrap(fetch_user, 300)
    user = await cached_fetch_user("alice")

    # Evict the entry for one set of arguments
    await ceych.invalidate(fetch_user, "alice")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ceych.cache.backends import Cache, MemoryCache, RedisCache
from ceych.cache.keys import create_cache_key
from ceych.cache.memoize import DEFAULT_TTL, WrapOptions, memoize
from ceych.config.logging import configure_logging
from ceych.config.settings import Settings, get_settings
from ceych.errors import BackendError, ConfigurationError
from ceych.stats import StatsClient

logger = logging.getLogger(__name__)


class Ceych:
    """Memoizes asynchronous functions against a shared cache backend.

    Args:
        cache_client: Backend storing results (default: a new MemoryCache)
        default_ttl: TTL in seconds for functions wrapped without one (default 30)
        stats_client: Optional sink with ``increment`` and ``timing`` methods
        swallow_write_timeouts: Return computed values when a cache write times out

    Raises:
        ConfigurationError: If default_ttl is zero or negative
    """

    def __init__(
        self,
        cache_client: Cache | None = None,
        default_ttl: float = DEFAULT_TTL,
        stats_client: StatsClient | None = None,
        swallow_write_timeouts: bool = True,
    ):
        if default_ttl <= 0:
            raise ConfigurationError(
                "Default TTL cannot be less than or equal to zero",
                {"default_ttl": default_ttl},
            )

        self.cache = cache_client if cache_client is not None else MemoryCache()
        self.default_ttl = default_ttl
        self.stats = stats_client
        self.swallow_write_timeouts = swallow_write_timeouts

        # A backend that fails to start leaves caching disabled
        try:
            self.cache.start()
        except Exception as e:
            logger.warning(f"Failed to initialize cache client: {e}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Ceych:
        """Create a client from settings.

        Configures the ``ceych`` logger from the log settings, then uses
        RedisCache when ``redis_url`` is configured, MemoryCache otherwise.
        """
        settings = settings or get_settings()
        configure_logging(settings.log_level, settings.log_format, settings.sanitize_logs)

        if settings.redis_url:
            logger.info(f"Using Redis cache at {settings.redis_url}")
            cache_client: Cache = RedisCache(url=settings.redis_url, prefix=settings.redis_prefix)
        else:
            logger.debug("Using in-memory cache")
            cache_client = MemoryCache(max_size=settings.memory_max_size)

        return cls(
            cache_client=cache_client,
            default_ttl=settings.default_ttl,
            swallow_write_timeouts=settings.swallow_write_timeouts,
            **kwargs,
        )

    def _wrap_options(self, ttl: float | str | None, suffix: str | None) -> WrapOptions:
        # wrap(func, "suffix") keeps the default TTL
        if isinstance(ttl, str):
            suffix, ttl = suffix or ttl, None

        if suffix is not None and not isinstance(suffix, str):
            raise ConfigurationError(
                f"Suffix must be a string, received [{suffix!r}]", {"suffix": repr(suffix)}
            )

        if ttl is None:
            ttl = self.default_ttl
        elif isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
            raise ConfigurationError(
                f"TTL must be a number of seconds, received [{ttl!r}]", {"ttl": repr(ttl)}
            )
        elif ttl <= 0:
            raise ConfigurationError("TTL cannot be less than or equal to zero", {"ttl": ttl})

        return WrapOptions(ttl=ttl, suffix=suffix or "")

    def wrap(
        self,
        func: Callable | None = None,
        ttl: float | str | None = None,
        suffix: str = "",
    ) -> Callable:
        """Return a cached version of ``func``.

        Args:
            func: Function to cache
            ttl: TTL in seconds, or the suffix when given as a string
            suffix: String appended to the cache key to tell apart functions
                with identical source

        Raises:
            ConfigurationError: If func is missing or not callable, ttl is not
                a positive number, or suffix is not a string
        """
        if func is None:
            raise ConfigurationError("Can only wrap a function, received nothing")

        if not callable(func):
            raise ConfigurationError(f"Can only wrap a function, received [{func!r}]")

        return memoize(
            self.cache,
            self._wrap_options(ttl, suffix),
            func,
            stats_client=self.stats,
            swallow_write_timeouts=self.swallow_write_timeouts,
        )

    def cached(self, ttl: float | str | None = None, suffix: str = "") -> Callable:
        """Decorator form of :meth:`wrap`.

        Example:
            @ceych.cached(ttl=60)
            async def get_user(user_id: str) -> dict:
                ...
        """
        options = self._wrap_options(ttl, suffix)

        def decorator(func: Callable) -> Callable:
            return self.wrap(func, options.ttl, options.suffix)

        return decorator

    async def invalidate(self, func: Callable, *args: Any, suffix: str = "", **kwargs: Any) -> None:
        """Drop the cache entry for ``func`` called with ``args``.

        ``func`` is the original function, and ``args``/``suffix`` must match
        those used for the cached call. Missing entries are ignored.
        """
        key = create_cache_key(func, args, suffix, kwargs)

        if not self.cache.is_ready():
            logger.debug(f"Cache not ready, nothing to invalidate for {key.id}")
            return

        try:
            await self.cache.drop(key)
        except Exception as e:
            raise BackendError(
                f"Failed to drop from cache: {e}", segment=key.segment, key_id=key.id
            ) from e

        logger.debug(f"Cache invalidated: {key.id}")

    def disable_cache(self) -> None:
        """Stop the backend; wrapped functions call straight through."""
        self.cache.stop()

    def enable_cache(self) -> None:
        """Start the backend unless it is already running."""
        if not self.cache.is_ready():
            self.cache.start()

    async def close(self) -> None:
        """Release backend connections."""
        await self.cache.close()


def create_client(**kwargs: Any) -> Ceych:
    """Create a Ceych client. Accepts the same arguments as :class:`Ceych`."""
    return Ceych(**kwargs)
