"""Ceych - memoization of asynchronous functions against pluggable caches."""

__version__ = "1.0.0"

from .cache import Cache, CacheEntry, CacheKey, MemoryCache, RedisCache, WrapOptions, memoize
from .client import Ceych, create_client
from .config import Settings, configure_logging, get_settings
from .errors import (
    BackendError,
    BackendLookupError,
    BackendWriteError,
    CacheTimeoutError,
    CeychError,
    ConfigurationError,
    KeyDerivationError,
)
from .stats import CacheStats, StatsClient

__all__ = [
    "Ceych",
    "create_client",
    # Cache
    "Cache",
    "CacheEntry",
    "CacheKey",
    "MemoryCache",
    "RedisCache",
    "WrapOptions",
    "memoize",
    # Stats
    "CacheStats",
    "StatsClient",
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "CeychError",
    "ConfigurationError",
    "KeyDerivationError",
    "BackendError",
    "BackendLookupError",
    "BackendWriteError",
    "CacheTimeoutError",
]
