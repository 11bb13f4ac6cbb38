"""Caching layer with pluggable backends.

Provides:
- Key derivation from a function's source text and call arguments
- memoize: get/compute/set orchestration around a single function
- In-memory cache (default, no dependencies)
- Redis cache (optional, for distributed deployments)
"""

from ceych.cache.backends import Cache, CacheEntry, MemoryCache, RedisCache
from ceych.cache.keys import CacheKey, create_cache_key, create_hash
from ceych.cache.memoize import WrapOptions, memoize

__all__ = [
    "Cache",
    "CacheEntry",
    "CacheKey",
    "MemoryCache",
    "RedisCache",
    "WrapOptions",
    "create_cache_key",
    "create_hash",
    "memoize",
]
