"""In-memory article cache with coalesced refreshes.

Provides:
- CacheSnapshot, the immutable {items, indexes, freshness} state
- CacheService, which owns the snapshot and guarantees at most one
  outstanding fetch against the remote source
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Sequence

from content_cache.core.errors import RefreshError, RefreshErrorType, classify_error
from content_cache.core.indexes import ContentIndexes, build_indexes, dedupe_by_slug
from content_cache.core.transform import transform_records
from content_cache.providers.content_types import ContentItem

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Sequence[Mapping[str, Any]]]]

DEFAULT_TTL_MS = 10 * 60 * 1000  # 10 minutes
DEFAULT_FETCH_TIMEOUT = 15.0  # seconds


class RefreshState(str, Enum):
    """Whether a refresh is currently running."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class CacheSnapshot:
    """Whole-cache state at one point in time.

    Items keep source order. The cache never re-sorts them.
    """

    items: tuple[ContentItem, ...] = ()
    indexes: ContentIndexes = field(default_factory=ContentIndexes)
    last_refreshed_at: float | None = None  # None = never refreshed
    error: RefreshError | None = None  # Outcome of the latest attempt
    skipped_records: int = 0
    generation: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def unavailable(self) -> bool:
        """Nothing cached and the last refresh failed.

        Distinguishes "could not load" from a legitimately empty collection.
        """
        return self.is_empty and self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_count": len(self.items),
            "tag_count": len(self.indexes.tags),
            "last_refreshed_at": self.last_refreshed_at,
            "generation": self.generation,
            "skipped_records": self.skipped_records,
            "unavailable": self.unavailable,
            "error": self.error.to_dict() if self.error else None,
        }


class CacheService:
    """Process-wide content cache.

    Instantiate once in the host application and pass it to consumers.
    Readers call ensure_fresh(); whenever the cache is stale or empty,
    exactly one refresh runs and every concurrent caller receives its result.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        clock: Callable[[], float] = time.time,
        name: str = "articles",
    ) -> None:
        if ttl_ms < 0:
            raise ValueError("ttl_ms must not be negative")
        self._fetcher = fetcher
        self._ttl = ttl_ms / 1000
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self.name = name
        self._snapshot = CacheSnapshot()
        self._in_flight: asyncio.Task[CacheSnapshot] | None = None

    @property
    def ttl_ms(self) -> int:
        return int(self._ttl * 1000)

    @property
    def refresh_state(self) -> RefreshState:
        if self._in_flight is not None and not self._in_flight.done():
            return RefreshState.IN_FLIGHT
        return RefreshState.IDLE

    def peek(self) -> CacheSnapshot:
        """Return whatever is cached right now without triggering a refresh."""
        return self._snapshot

    def is_fresh(self) -> bool:
        snapshot = self._snapshot
        if snapshot.is_empty or snapshot.last_refreshed_at is None:
            return False
        return self._clock() - snapshot.last_refreshed_at < self._ttl

    def invalidate(self) -> None:
        """Mark the cache stale. Data stays readable until the next refresh."""
        if self._snapshot.last_refreshed_at is not None:
            self._snapshot = replace(self._snapshot, last_refreshed_at=None)

    async def ensure_fresh(self, force_refresh: bool = False) -> CacheSnapshot:
        """Return a fresh snapshot, refreshing from the remote source if needed.

        Never raises for remote failures: on error the previous snapshot is
        returned with its error field set.

        Args:
            force_refresh: Refresh even if the TTL has not elapsed. Still
                joins a refresh that is already running.
        """
        task = self._in_flight
        if task is not None and not task.done():
            logger.debug(f"[{self.name}] Joining in-flight refresh")
            return await asyncio.shield(task)

        if not force_refresh and self.is_fresh():
            logger.debug(f"[{self.name}] Cache hit ({len(self._snapshot.items)} items)")
            return self._snapshot

        task = asyncio.create_task(self._refresh())
        self._in_flight = task
        task.add_done_callback(self._clear_in_flight)
        # Shielded so a waiter that gives up does not cancel the shared refresh
        return await asyncio.shield(task)

    def _clear_in_flight(self, task: asyncio.Task[CacheSnapshot]) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _refresh(self) -> CacheSnapshot:
        started = self._clock()
        previous = self._snapshot

        try:
            raws = await asyncio.wait_for(self._fetcher(), timeout=self._fetch_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(e)
            if error.error_type == RefreshErrorType.UNEXPECTED:
                logger.exception(f"[{self.name}] Unexpected refresh failure")
            else:
                logger.warning(
                    f"[{self.name}] Refresh failed ({error.error_type.value}): {error.message}. "
                    f"Serving {len(previous.items)} cached items"
                )
            return self._install_failure(error)

        if not isinstance(raws, Sequence) or isinstance(raws, (str, bytes)):
            logger.warning(
                f"[{self.name}] Fetcher returned {type(raws).__name__}, expected a list of records. "
                f"Serving {len(previous.items)} cached items"
            )
            return self._install_failure(
                RefreshError(
                    RefreshErrorType.INVALID_RESPONSE,
                    f"Remote source returned {type(raws).__name__} instead of a list of records",
                )
            )

        items, skipped = transform_records(raws)
        items = dedupe_by_slug(items)

        if not items and not previous.is_empty:
            logger.warning(
                f"[{self.name}] Remote returned no usable items ({skipped} skipped). "
                f"Keeping {len(previous.items)} cached items"
            )
            return self._install_failure(
                RefreshError(RefreshErrorType.EMPTY_RESPONSE, "Remote source returned no usable items")
            )

        # No awaits from here on: readers never see items and indexes
        # from different generations
        snapshot = CacheSnapshot(
            items=tuple(items),
            indexes=build_indexes(items),
            last_refreshed_at=self._clock(),
            error=None,
            skipped_records=skipped,
            generation=self._snapshot.generation + 1,
        )
        self._snapshot = snapshot

        logger.info(
            f"[{self.name}] Refreshed {len(items)} items "
            f"({skipped} skipped) in {self._clock() - started:.2f}s"
        )
        return snapshot

    def _install_failure(self, error: RefreshError) -> CacheSnapshot:
        # Items, indexes and freshness stay untouched (last known good)
        self._snapshot = replace(self._snapshot, error=error)
        return self._snapshot

    async def aclose(self) -> None:
        """Wait for a running refresh to settle."""
        task = self._in_flight
        if task is not None and not task.done():
            await asyncio.wait([task])
