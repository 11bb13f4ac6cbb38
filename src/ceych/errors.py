"""Ceych Error Hierarchy.

Structured exception types for the memoization engine.

Errors raised by the wrapped computation itself are never wrapped in one of
these types; they reach the caller exactly as raised.
"""

from __future__ import annotations

from typing import Any


class CeychError(Exception):
    """Base error for all Ceych exceptions."""

    code = "CEYCH_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CeychError):
    """Invalid client options or wrap arguments."""

    code = "CONFIGURATION"


class KeyDerivationError(CeychError):
    """A cache key could not be built from the function and its arguments."""

    code = "KEY_DERIVATION"

    def __init__(self, message: str, function: str = None):
        super().__init__(message, {"function": function})
        self.function = function


# Backend Errors
class BackendError(CeychError):
    """Base error for cache backend failures."""

    code = "BACKEND_ERROR"

    def __init__(self, message: str, segment: str = None, key_id: str = None):
        super().__init__(message, {"segment": segment, "key_id": key_id})
        self.segment = segment
        self.key_id = key_id


class BackendLookupError(BackendError):
    """Reading from the cache backend failed."""

    code = "BACKEND_LOOKUP"


class BackendWriteError(BackendError):
    """Writing a computed result to the cache backend failed.

    The computed value is kept on the error so callers can still use it.
    """

    code = "BACKEND_WRITE"

    def __init__(
        self,
        message: str,
        segment: str = None,
        key_id: str = None,
        result: Any = None,
    ):
        super().__init__(message, segment=segment, key_id=key_id)
        self.result = result


class CacheTimeoutError(BackendError):
    """A backend operation timed out."""

    code = "CACHE_TIMEOUT"
