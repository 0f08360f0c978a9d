"""Error taxonomy for the content cache.

Refresh failures never propagate to readers. They are classified into a
RefreshError and attached to the cache snapshot instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx


class RefreshErrorType(str, Enum):
    """Classification of refresh failures."""

    TIMEOUT = "timeout"  # Retriable
    CONNECTION_ERROR = "connection_error"  # Retriable
    HTTP_4XX = "http_4xx"  # Not retriable
    HTTP_5XX = "http_5xx"  # Retriable (server error)
    AUTH = "auth"  # Not retriable (bad token)
    RATE_LIMITED = "rate_limited"  # Retriable
    INVALID_RESPONSE = "invalid_response"  # Not retriable
    EMPTY_RESPONSE = "empty_response"  # Retriable
    CONFIG = "config"  # Not retriable (missing host/publication)
    UNEXPECTED = "unexpected"  # Not retriable


RETRIABLE_ERRORS = {
    RefreshErrorType.TIMEOUT,
    RefreshErrorType.CONNECTION_ERROR,
    RefreshErrorType.HTTP_5XX,
    RefreshErrorType.RATE_LIMITED,
    RefreshErrorType.EMPTY_RESPONSE,
}


class ContentCacheError(Exception):
    """Base exception for content cache errors."""


class TransientFetchError(ContentCacheError):
    """The remote source could not deliver records.

    Recovered locally by falling back to the last good snapshot.
    """

    error_type: RefreshErrorType = RefreshErrorType.UNEXPECTED

    def __init__(self, message: str, error_type: RefreshErrorType | None = None) -> None:
        super().__init__(message)
        if error_type is not None:
            self.error_type = error_type


class MalformedRecordError(ContentCacheError, ValueError):
    """A raw record is missing a required field and cannot be transformed."""


class InvalidPageError(ContentCacheError, ValueError):
    """Pagination arguments out of range (page < 1, page_size <= 0, limit < 0)."""


@dataclass(frozen=True)
class RefreshError:
    """Outcome of a failed refresh attempt, kept on the snapshot."""

    error_type: RefreshErrorType
    message: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def retriable(self) -> bool:
        return self.error_type in RETRIABLE_ERRORS

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "retriable": self.retriable,
            "occurred_at": self.occurred_at.isoformat(),
        }


def classify_error(exc: BaseException) -> RefreshError:
    """Map an exception raised by a fetcher to a RefreshError."""
    if isinstance(exc, TransientFetchError):
        return RefreshError(exc.error_type, str(exc))

    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return RefreshError(RefreshErrorType.TIMEOUT, "Request to remote source timed out")

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            error_type = RefreshErrorType.AUTH
        elif status == 429:
            error_type = RefreshErrorType.RATE_LIMITED
        elif status >= 500:
            error_type = RefreshErrorType.HTTP_5XX
        else:
            error_type = RefreshErrorType.HTTP_4XX
        return RefreshError(error_type, f"HTTP {status} from remote source")

    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return RefreshError(RefreshErrorType.CONNECTION_ERROR, f"Connection error: {exc}")

    if isinstance(exc, ValueError):
        # json decoding errors and similar shape problems
        return RefreshError(RefreshErrorType.INVALID_RESPONSE, f"{type(exc).__name__}: {exc}")

    return RefreshError(RefreshErrorType.UNEXPECTED, f"Unexpected error: {type(exc).__name__}: {exc}")
