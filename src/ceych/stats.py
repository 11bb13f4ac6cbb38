"""Cache statistics.

Any object with StatsD-style ``increment`` and ``timing`` methods can be passed
to a client as its stats sink. CacheStats is an in-process implementation that
keeps counters and timing samples in memory.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

HITS = "ceych.hits"
MISSES = "ceych.misses"
ERRORS = "ceych.errors"
WRITE_TIMEOUTS = "ceych.write_timeouts"
GET_TIMING = "ceych.get"
SET_TIMING = "ceych.set"


@runtime_checkable
class StatsClient(Protocol):
    """Metrics sink consumed by the memoization engine."""

    def increment(self, metric: str) -> None: ...

    def timing(self, metric: str, duration_ms: float) -> None: ...


class CacheStats:
    """Collects counters and timing samples in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, metric: str) -> None:
        with self._lock:
            self._counters[metric] += 1

    def timing(self, metric: str, duration_ms: float) -> None:
        with self._lock:
            self._timings[metric].append(duration_ms)

    def count(self, metric: str) -> int:
        return self._counters.get(metric, 0)

    def timings(self, metric: str) -> list[float]:
        return list(self._timings.get(metric, []))

    @property
    def hits(self) -> int:
        return self.count(HITS)

    @property
    def misses(self) -> int:
        return self.count(MISSES)

    @property
    def errors(self) -> int:
        return self.count(ERRORS)

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {
                    name: {
                        "count": len(samples),
                        "avg_ms": sum(samples) / len(samples) if samples else 0.0,
                        "max_ms": max(samples, default=0.0),
                    }
                    for name, samples in self._timings.items()
                },
                "hit_rate": self.hit_rate,
            }


def emit_increment(stats_client: StatsClient | None, metric: str) -> None:
    """Increment a counter, ignoring any failure of the sink."""
    if stats_client is None:
        return
    try:
        stats_client.increment(metric)
    except Exception as e:
        logger.debug(f"Stats increment failed for {metric}: {e}")


def emit_timing(stats_client: StatsClient | None, metric: str, duration_ms: float) -> None:
    """Record a timing sample, ignoring any failure of the sink."""
    if stats_client is None:
        return
    try:
        stats_client.timing(metric, duration_ms)
    except Exception as e:
        logger.debug(f"Stats timing failed for {metric}: {e}")
