"""Public read API over the content cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from content_cache.core.cache import CacheService, CacheSnapshot
from content_cache.core.errors import InvalidPageError, RefreshError
from content_cache.providers.content_types import ContentItem

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class Page:
    """One page of an offset-paginated listing."""

    items: list[ContentItem]
    has_more: bool
    page: int
    page_size: int
    total: int
    error: RefreshError | None = None
    unavailable: bool = False

    def to_dict(self, include_body: bool = False) -> dict[str, Any]:
        return {
            "items": [item.to_dict(include_body=include_body) for item in self.items],
            "has_more": self.has_more,
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "unavailable": self.unavailable,
            "error": self.error.to_dict() if self.error else None,
        }


def validate_page(page: int, page_size: int) -> None:
    """Reject out-of-range pagination instead of clamping it."""
    if page < 1:
        raise InvalidPageError(f"page must be >= 1, got {page}")
    if page_size <= 0:
        raise InvalidPageError(f"page_size must be > 0, got {page_size}")


def validate_limit(limit: int | None) -> None:
    if limit is not None and limit < 0:
        raise InvalidPageError(f"limit must be >= 0, got {limit}")


def paginate(
    items: Sequence[ContentItem],
    page: int,
    page_size: int,
    snapshot: CacheSnapshot | None = None,
) -> Page:
    """Slice items[(page-1)*page_size : page*page_size]."""
    validate_page(page, page_size)
    start = (page - 1) * page_size
    end = page * page_size
    return Page(
        items=list(items[start:end]),
        has_more=end < len(items),
        page=page,
        page_size=page_size,
        total=len(items),
        error=snapshot.error if snapshot else None,
        unavailable=snapshot.unavailable if snapshot else False,
    )


class ContentQuery:
    """Read operations for page-level code.

    Every async read calls ensure_fresh() first, so data is refreshed
    lazily on read. "Not found" is None or an empty list, never an error.
    """

    def __init__(self, cache: CacheService, *, default_page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if default_page_size <= 0:
            raise ValueError("default_page_size must be > 0")
        self.cache = cache
        self.default_page_size = default_page_size

    async def snapshot(self) -> CacheSnapshot:
        """Fresh snapshot, including the error/unavailable flags."""
        return await self.cache.ensure_fresh()

    def peek(self) -> list[ContentItem]:
        """Currently cached items, without triggering a refresh."""
        return list(self.cache.peek().items)

    async def get_all(self) -> list[ContentItem]:
        snapshot = await self.cache.ensure_fresh()
        return list(snapshot.items)

    async def get_by_slug(self, slug: str) -> ContentItem | None:
        snapshot = await self.cache.ensure_fresh()
        return snapshot.indexes.by_slug.get(slug)

    async def get_by_tag(self, tag_slug: str, limit: int | None = None) -> list[ContentItem]:
        """Items carrying tag_slug in source order; limit=None returns all."""
        validate_limit(limit)
        snapshot = await self.cache.ensure_fresh()
        items = snapshot.indexes.by_tag.get(tag_slug, ())
        if limit is not None:
            items = items[:limit]
        return list(items)

    async def list_page(self, page: int, page_size: int | None = None) -> Page:
        """Offset pagination over get_all() order. Pages are 1-based."""
        page_size = page_size if page_size is not None else self.default_page_size
        validate_page(page, page_size)
        snapshot = await self.cache.ensure_fresh()
        return paginate(snapshot.items, page, page_size, snapshot)

    async def list_by_tag(self, tag_slug: str, page: int, page_size: int | None = None) -> Page:
        page_size = page_size if page_size is not None else self.default_page_size
        validate_page(page, page_size)
        snapshot = await self.cache.ensure_fresh()
        return paginate(snapshot.indexes.by_tag.get(tag_slug, ()), page, page_size, snapshot)

    async def get_latest(self, limit: int = DEFAULT_PAGE_SIZE) -> list[ContentItem]:
        """Newest first by publish date. Returns a sorted copy."""
        validate_limit(limit)
        items = await self.get_all()
        items.sort(key=lambda item: item.published_at, reverse=True)
        return items[:limit]

    async def get_trending(self, limit: int = 6) -> list[ContentItem]:
        """Most viewed first; items without a view count sort last."""
        validate_limit(limit)
        items = await self.get_all()
        items.sort(key=lambda item: (item.view_count or 0, item.published_at), reverse=True)
        return items[:limit]
