"""Memoization of asynchronous functions against a cache backend.

Each call of a memoized function runs the same sequence:

    check ready -> derive key -> get -> hit: return cached item
                                     -> miss: compute -> set -> return result

A backend that is not ready turns the wrapper into a plain pass-through.
Concurrent identical calls are not coalesced: each one that misses computes
and writes its own result.

Usage:
    func = memoize(MemoryCache(), WrapOptions(ttl=60), fetch_user)

    user = await func("alice")

    # or, callback style
    func("alice", lambda err, user: ...)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from ceych.cache.backends import Cache
from ceych.cache.keys import CacheKey, create_cache_key
from ceych.errors import BackendLookupError, BackendWriteError, CacheTimeoutError
from ceych.stats import (
    ERRORS,
    GET_TIMING,
    HITS,
    MISSES,
    SET_TIMING,
    WRITE_TIMEOUTS,
    StatsClient,
    emit_increment,
    emit_timing,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30


@dataclass(frozen=True)
class WrapOptions:
    """Per-function caching options, fixed when the function is wrapped."""

    ttl: float = DEFAULT_TTL  # seconds
    suffix: str = ""

    @property
    def ttl_ms(self) -> int:
        # Sub-millisecond TTLs still expire, never px=0
        return max(1, round(self.ttl * 1000))


def _log_extra(key: CacheKey) -> dict:
    return {"key_id": key.id, "segment": key.segment}


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


async def _apply(func: Callable, args: tuple, kwargs: dict) -> Any:
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


_background_tasks: set[asyncio.Task] = set()


def _on_callback_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Cache callback raised an exception", exc_info=error)


def _as_callback(call: Coroutine, callback: Callable) -> asyncio.Task | None:
    """Deliver the outcome of ``call`` as ``callback(error, *results)``.

    Inside a running event loop the call is scheduled and its task returned;
    the task is held until it finishes and errors raised by the callback are
    logged. Otherwise it is run to completion before returning.
    """

    async def run() -> None:
        try:
            result = await call
        except Exception as e:
            callback(e)
            return

        if isinstance(result, tuple):
            callback(None, *result)
        else:
            callback(None, result)

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(run())
        return None
    task = loop.create_task(run())
    _background_tasks.add(task)
    task.add_done_callback(_on_callback_done)
    return task


def memoize(
    cache_client: Cache,
    options: WrapOptions,
    func: Callable,
    stats_client: StatsClient | None = None,
    swallow_write_timeouts: bool = True,
) -> Callable:
    """Wrap ``func`` so its results are read from and written to ``cache_client``.

    Args:
        cache_client: Backend storing the results
        options: TTL and key suffix for this function
        func: Coroutine function (or function returning a value or awaitable)
        stats_client: Optional sink for hit/miss/error counters and timings
        swallow_write_timeouts: Return the computed value when the backend
            times out while storing it, instead of raising BackendWriteError

    Returns:
        A function returning an awaitable result, or accepting a trailing
        callback that receives ``(error, *results)``.
    """

    async def lookup(key: CacheKey) -> Any:
        started = time.perf_counter()
        try:
            return await cache_client.get(key)
        except Exception as e:
            emit_increment(stats_client, ERRORS)
            raise BackendLookupError(
                f"Failed to get from cache: {e}", segment=key.segment, key_id=key.id
            ) from e
        finally:
            emit_timing(stats_client, GET_TIMING, _elapsed_ms(started))

    async def store(key: CacheKey, result: Any) -> None:
        started = time.perf_counter()
        try:
            await cache_client.set(key, result, options.ttl_ms)
        except (CacheTimeoutError, TimeoutError) as e:
            if not swallow_write_timeouts:
                emit_increment(stats_client, ERRORS)
                raise BackendWriteError(
                    f"Failed to set in cache: {e}",
                    segment=key.segment,
                    key_id=key.id,
                    result=result,
                ) from e
            emit_increment(stats_client, WRITE_TIMEOUTS)
            logger.warning(
                f"Cache write timed out for {key.id}, returning computed value",
                extra=_log_extra(key),
            )
        except Exception as e:
            emit_increment(stats_client, ERRORS)
            raise BackendWriteError(
                f"Failed to set in cache: {e}",
                segment=key.segment,
                key_id=key.id,
                result=result,
            ) from e
        else:
            logger.debug(f"Cache set: {key.id}", extra=_log_extra(key))
        finally:
            emit_timing(stats_client, SET_TIMING, _elapsed_ms(started))

    async def call(args: tuple, kwargs: dict) -> Any:
        if not cache_client.is_ready():
            return await _apply(func, args, kwargs)

        key = create_cache_key(func, args, options.suffix, kwargs)

        cached = await lookup(key)
        if cached is not None:
            emit_increment(stats_client, HITS)
            logger.debug(f"Cache hit: {key.id}", extra=_log_extra(key))
            return cached.item

        emit_increment(stats_client, MISSES)
        logger.debug(f"Cache miss: {key.id}", extra=_log_extra(key))

        result = await _apply(func, args, kwargs)

        # The backend may have been stopped while the function ran
        if cache_client.is_ready():
            await store(key, result)

        return result

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if args and callable(args[-1]):
            return _as_callback(call(args[:-1], kwargs), args[-1])
        return call(args, kwargs)

    def _get_cache_key(*a, **kw) -> CacheKey:
        return create_cache_key(func, a, options.suffix, kw)

    wrapper.cache_key = _get_cache_key
    wrapper.options = options

    return wrapper
