"""Pytest configuration and fixtures."""

import logging
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ceych.cache.backends import CacheEntry  # noqa: E402


@pytest.fixture(autouse=True)
def reset_ceych_logger():
    """Undo handlers and levels installed by configure_logging."""
    yield
    logger = logging.getLogger("ceych")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def cache_client():
    """Backend double that is ready and always misses."""
    client = MagicMock()
    client.is_ready.return_value = True
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=None)
    client.drop = AsyncMock(return_value=None)
    client.close = AsyncMock(return_value=None)
    return client


@pytest.fixture
def make_entry():
    def _make(item):
        return CacheEntry(item=item, stored_at=0.0, ttl_ms=30000)

    return _make
