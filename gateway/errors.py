"""Typed exception hierarchy for the admission pipeline and read paths.

Admission errors (``AuthError``, ``RateLimitExceeded``) and ``NotFoundError``
are mapped to HTTP responses by the handlers registered in ``gateway.main``.
``RecordingError`` and ``AggregationError`` are internal and never reach a
client.
"""

from __future__ import annotations

import enum


class GatewayError(Exception):
    """Base exception for all gateway errors."""


class StorageError(GatewayError):
    """Raised when a storage call fails or exceeds its timeout."""


class AuthFailure(str, enum.Enum):
    MISSING = "missing"
    INVALID = "invalid"
    STORAGE = "storage"


class AuthError(GatewayError):
    """Raised when a request cannot be admitted as a known principal."""

    def __init__(self, reason: AuthFailure):
        self.reason = reason
        super().__init__(f"Authentication failed: {reason.value}")


class RateLimitExceeded(GatewayError):
    """Raised when a principal has used up its sliding window."""

    def __init__(self, limit: int, retry_after: float):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(f"Rate limit of {limit} requests exceeded")


class RecordingError(GatewayError):
    """Raised when a telemetry record cannot be persisted."""


class AggregationError(GatewayError):
    """Raised when a metrics sub-query fails."""

    def __init__(self, name: str, message: str = "query failed"):
        self.name = name
        super().__init__(f"{name}: {message}")


class NotFoundError(GatewayError):
    """Raised when a read-path lookup finds no matching API key."""
