"""Tests for cache backends."""

import asyncio
import json
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.exceptions

from ceych.cache.backends import CacheEntry, MemoryCache, RedisCache
from ceych.cache.keys import CacheKey
from ceych.errors import BackendError, CacheTimeoutError

KEY = CacheKey(id="hashed", segment="ceych_test")
OTHER_SEGMENT_KEY = CacheKey(id="hashed", segment="ceych_other")


class TestCacheEntry:
    """Tests for CacheEntry."""

    def test_not_expired_when_no_ttl(self):
        entry = CacheEntry(item="test", stored_at=time.time() - 100, ttl_ms=None)
        assert entry.expires_at is None
        assert not entry.is_expired()

    def test_not_expired_before_time(self):
        entry = CacheEntry(item="test", stored_at=time.time(), ttl_ms=100_000)
        assert not entry.is_expired()

    def test_expired_after_time(self):
        entry = CacheEntry(item="test", stored_at=time.time() - 2, ttl_ms=1000)
        assert entry.is_expired()

    def test_expires_at_uses_milliseconds(self):
        entry = CacheEntry(item="test", stored_at=100.0, ttl_ms=5000)
        assert entry.expires_at == 105.0


class TestMemoryCache:
    """Tests for MemoryCache."""

    @pytest.fixture
    def cache(self):
        cache = MemoryCache(max_size=10)
        cache.start()
        return cache

    def test_not_ready_until_started(self):
        cache = MemoryCache()
        assert cache.is_ready() is False
        cache.start()
        assert cache.is_ready() is True

    def test_set_and_get(self, cache):
        async def _test():
            await cache.set(KEY, {"data": 123}, 30000)
            entry = await cache.get(KEY)
            assert entry.item == {"data": 123}
            assert entry.ttl_ms == 30000

        asyncio.run(_test())

    def test_get_missing_key(self, cache):
        assert asyncio.run(cache.get(KEY)) is None

    def test_stores_none(self, cache):
        async def _test():
            await cache.set(KEY, None, 30000)
            entry = await cache.get(KEY)
            assert entry is not None
            assert entry.item is None

        asyncio.run(_test())

    def test_segments_are_isolated(self, cache):
        async def _test():
            await cache.set(KEY, 1, 30000)
            assert await cache.get(OTHER_SEGMENT_KEY) is None

        asyncio.run(_test())

    def test_expired_entry_is_a_miss(self, cache):
        cache._cache[(KEY.segment, KEY.id)] = CacheEntry(
            item="value", stored_at=time.time() - 10, ttl_ms=1000
        )
        assert asyncio.run(cache.get(KEY)) is None
        assert cache.size == 0

    def test_drop(self, cache):
        async def _test():
            await cache.set(KEY, 1, 30000)
            await cache.drop(KEY)
            assert await cache.get(KEY) is None

        asyncio.run(_test())

    def test_drop_missing_key(self, cache):
        asyncio.run(cache.drop(KEY))

    def test_max_size_eviction(self, cache):
        async def _test():
            for i in range(15):
                await cache.set(CacheKey(id=f"key{i}", segment="s"), i, 30000)

            assert cache.size == 10
            # Oldest entries evicted
            assert await cache.get(CacheKey(id="key0", segment="s")) is None
            assert (await cache.get(CacheKey(id="key14", segment="s"))).item == 14

        asyncio.run(_test())

    def test_update_existing_key_does_not_evict(self, cache):
        async def _test():
            for i in range(10):
                await cache.set(CacheKey(id=f"key{i}", segment="s"), i, 30000)
            await cache.set(CacheKey(id="key0", segment="s"), "updated", 30000)

            assert cache.size == 10
            assert (await cache.get(CacheKey(id="key0", segment="s"))).item == "updated"

        asyncio.run(_test())

    def test_cleanup_expired_removes_all(self):
        cache = MemoryCache(cleanup_interval=1)
        cache.start()
        for i in range(3):
            cache._cache[("s", f"key{i}")] = CacheEntry(
                item=i, stored_at=time.time() - 10, ttl_ms=1000
            )

        asyncio.run(cache.get(KEY))
        assert cache.size == 0

    def test_stop_discards_entries(self, cache):
        asyncio.run(cache.set(KEY, 1, 30000))
        cache.stop()
        assert cache.is_ready() is False
        assert cache.size == 0

    def test_operations_fail_when_stopped(self, cache):
        cache.stop()
        with pytest.raises(BackendError, match="not started"):
            asyncio.run(cache.get(KEY))
        with pytest.raises(BackendError):
            asyncio.run(cache.set(KEY, 1, 30000))

    def test_close_stops(self, cache):
        asyncio.run(cache.close())
        assert cache.is_ready() is False


class TestRedisCache:
    """Tests for RedisCache against a mocked client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=0)
        client.aclose = AsyncMock(return_value=None)
        return client

    @pytest.fixture
    def cache(self, client):
        cache = RedisCache(prefix="test:", client=client)
        cache.start()
        return cache

    def test_make_key(self, cache):
        assert cache._make_key(KEY) == "test:ceych_test:hashed"

    def test_start_with_url_creates_client(self):
        cache = RedisCache(url="redis://localhost:6379/0")
        cache.start()
        assert cache.is_ready() is True
        assert cache._client is not None

    def test_get_missing(self, cache, client):
        assert asyncio.run(cache.get(KEY)) is None
        client.get.assert_awaited_once_with("test:ceych_test:hashed")

    def test_get_decodes_entry(self, cache, client):
        client.get.return_value = json.dumps(
            {"item": {"data": "test"}, "stored_at": 1.0, "ttl_ms": 5000}
        ).encode()

        entry = asyncio.run(cache.get(KEY))
        assert entry == CacheEntry(item={"data": "test"}, stored_at=1.0, ttl_ms=5000)

    def test_set_uses_millisecond_expiry(self, cache, client):
        asyncio.run(cache.set(KEY, [1, 2], 5000))

        args, kwargs = client.set.call_args
        assert args[0] == "test:ceych_test:hashed"
        assert json.loads(args[1])["item"] == [1, 2]
        assert kwargs == {"px": 5000}

    def test_drop(self, cache, client):
        asyncio.run(cache.drop(KEY))
        client.delete.assert_awaited_once_with("test:ceych_test:hashed")

    def test_get_timeout_translated(self, cache, client):
        client.get.side_effect = redis.exceptions.TimeoutError("read timeout")
        with pytest.raises(CacheTimeoutError):
            asyncio.run(cache.get(KEY))

    def test_set_timeout_translated(self, cache, client):
        client.set.side_effect = redis.exceptions.TimeoutError("write timeout")
        with pytest.raises(CacheTimeoutError) as exc_info:
            asyncio.run(cache.set(KEY, 1, 1000))
        assert exc_info.value.key_id == "hashed"

    def test_other_errors_propagate(self, cache, client):
        client.set.side_effect = redis.exceptions.ConnectionError("refused")
        with pytest.raises(redis.exceptions.ConnectionError):
            asyncio.run(cache.set(KEY, 1, 1000))

    def test_not_started(self, client):
        cache = RedisCache(client=client)
        with pytest.raises(BackendError, match="not started"):
            asyncio.run(cache.get(KEY))

    def test_stop_and_close(self, cache, client):
        cache.stop()
        assert cache.is_ready() is False

        asyncio.run(cache.close())
        client.aclose.assert_awaited_once()
        assert cache._client is None
