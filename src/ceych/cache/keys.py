"""Cache key derivation.

A key is the SHA-256 of the function's source text followed by its JSON encoded
arguments (and suffix, if any). Two functions with identical source and
arguments share a key; pass a suffix to tell them apart.
"""

from __future__ import annotations

import hashlib
import inspect
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ceych import __version__
from ceych.errors import KeyDerivationError

SEGMENT = f"ceych_{__version__}"


@dataclass(frozen=True)
class CacheKey:
    """Address of a single entry in a cache backend."""

    id: str
    segment: str = SEGMENT


def create_hash(string: str) -> str:
    return hashlib.sha256(string.encode("utf-8")).hexdigest()


def function_text(func: Callable) -> str:
    """Return the text used as a stand-in for a function's identity.

    Source text is preferred. Functions without retrievable source (builtins,
    REPL definitions) fall back to their qualified name.
    """
    func = inspect.unwrap(func)
    try:
        return inspect.getsource(func)
    except (OSError, TypeError):
        pass

    module = getattr(func, "__module__", None)
    qualname = getattr(func, "__qualname__", None)
    if module and qualname:
        return f"{module}.{qualname}"

    raise KeyDerivationError(
        f"Failed to create cache key: no textual form for [{func!r}]",
        function=repr(func),
    )


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def create_key(
    func: Callable,
    args: Sequence[Any],
    suffix: str = "",
    kwargs: dict[str, Any] | None = None,
) -> str:
    """Build the hex digest identifying a call of ``func`` with ``args``."""
    key_string = function_text(func)

    try:
        key_string += _dumps(list(args))
        if kwargs:
            key_string += json.dumps(
                kwargs, separators=(",", ":"), ensure_ascii=False, sort_keys=True
            )
    except (TypeError, ValueError, RecursionError) as e:
        raise KeyDerivationError(
            f"Failed to create cache key from arguments: {e}",
            function=getattr(func, "__qualname__", repr(func)),
        ) from e

    if suffix:
        key_string += suffix

    return create_hash(key_string)


def create_cache_key(
    func: Callable,
    args: Sequence[Any],
    suffix: str = "",
    kwargs: dict[str, Any] | None = None,
) -> CacheKey:
    return CacheKey(id=create_key(func, args, suffix, kwargs), segment=SEGMENT)
