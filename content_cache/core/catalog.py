"""Category catalog built from the content query API.

Categories are the tags found on cached articles. Aggregates (counts,
featured items, orderings) are memoized for their own TTL so they are not
recomputed on every call.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from content_cache.core.query import ContentQuery, validate_limit
from content_cache.core.tags import resolve_tag_color
from content_cache.core.ttl import TTLMemo
from content_cache.providers.content_types import ContentItem, Tag

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_TTL_MS = 30 * 60 * 1000  # 30 minutes
DEFAULT_MAX_TAG_PREVIEW = 4

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

CATEGORY_DESCRIPTIONS = {
    "javascript": "Modern JavaScript tutorials and best practices",
    "react": "React tutorials, patterns and optimization techniques",
    "nextjs": "Next.js app building, routing and server components",
    "css": "Modern CSS techniques, animations, and layouts",
    "typescript": "TypeScript types, patterns and best practices",
    "nodejs": "Server-side JavaScript with Node.js",
    "api": "Building and consuming APIs",
    "clean-code": "Writing maintainable, clean code",
    "performance": "Web performance optimization techniques",
    "ai": "Artificial intelligence and machine learning",
    "design": "UI/UX design principles and practices",
    "web-dev": "Modern web development techniques",
    "devops": "DevOps practices and tools",
    "tutorials": "Step-by-step coding tutorials",
    "tips": "Quick tips and tricks",
    "architecture": "Software architecture patterns",
    "frontend": "Frontend development and modern UI",
}


class CategoryOrder(str, Enum):
    """Sort order for the category listing."""

    POPULAR = "popular"  # Most articles first
    LATEST = "latest"  # Most recently published article first


def describe_category(tag: Tag) -> str:
    return CATEGORY_DESCRIPTIONS.get(tag.slug) or f"Explore {tag.name} articles and resources"


@dataclass(frozen=True)
class Category:
    """A tag viewed as a browsable category."""

    name: str
    slug: str
    color: str
    description: str
    article_count: int
    featured_items: tuple[ContentItem, ...] = field(default_factory=tuple)
    latest_published_at: datetime | None = None

    def to_dict(self, include_featured: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "slug": self.slug,
            "color": self.color,
            "description": self.description,
            "article_count": self.article_count,
            "latest_published_at": (
                self.latest_published_at.isoformat() if self.latest_published_at else None
            ),
        }
        if include_featured:
            data["featured_items"] = [item.to_dict(include_body=False) for item in self.featured_items]
        return data


def group_categories(items: list[ContentItem], max_tag_preview: int) -> list[Category]:
    """Group items by tag slug, in first-seen tag order.

    Name and color of a category come from the first item carrying the tag.
    """
    first_tag: dict[str, Tag] = {}
    members: dict[str, list[ContentItem]] = {}
    for item in items:
        for tag in item.tags:
            if tag.slug not in members:
                first_tag[tag.slug] = tag
                members[tag.slug] = []
            members[tag.slug].append(item)

    categories = []
    for slug, tagged in members.items():
        tag = first_tag[slug]
        categories.append(
            Category(
                name=tag.name,
                slug=slug,
                color=resolve_tag_color(slug, tag.color),
                description=describe_category(tag),
                article_count=len(tagged),
                featured_items=tuple(tagged[:max_tag_preview]),
                latest_published_at=max(item.published_at for item in tagged),
            )
        )
    return categories


def sort_categories(categories: list[Category], order: CategoryOrder) -> list[Category]:
    """Return a sorted copy. Both sorts are stable."""
    if order == CategoryOrder.LATEST:
        return sorted(
            categories,
            key=lambda category: category.latest_published_at or _OLDEST,
            reverse=True,
        )
    return sorted(categories, key=lambda category: category.article_count, reverse=True)


class CategoryCatalog:
    """Category views over the cached articles."""

    def __init__(
        self,
        query: ContentQuery,
        *,
        ttl_ms: int = DEFAULT_CATEGORY_TTL_MS,
        max_tag_preview: int = DEFAULT_MAX_TAG_PREVIEW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_tag_preview < 0:
            raise ValueError("max_tag_preview must not be negative")
        self._query = query
        self.max_tag_preview = max_tag_preview
        self._memo: TTLMemo[list[Category]] = TTLMemo(ttl_ms, clock)

    def invalidate(self) -> None:
        """Drop memoized aggregates; the next call recomputes them."""
        self._memo.clear()

    async def get_all_categories(self, order: CategoryOrder | str = CategoryOrder.POPULAR) -> list[Category]:
        """All categories in the requested order.

        Raises:
            ValueError: If order is not a known CategoryOrder value.
        """
        order = CategoryOrder(order)
        cached = self._memo.get(order)
        if cached is not None:
            return list(cached)

        snapshot = await self._query.snapshot()
        categories = sort_categories(
            group_categories(list(snapshot.items), self.max_tag_preview), order
        )
        logger.debug(
            f"Built {len(categories)} categories ({order.value}) from {len(snapshot.items)} items"
        )

        # Never memoize the empty result of a failed cold start
        if not snapshot.unavailable:
            self._memo.set(order, categories)
        return list(categories)

    async def get_popular_categories(self, limit: int = 6) -> list[Category]:
        validate_limit(limit)
        return (await self.get_all_categories(CategoryOrder.POPULAR))[:limit]

    async def get_category_by_slug(self, slug: str) -> Category | None:
        for category in await self.get_all_categories():
            if category.slug == slug:
                return category
        return None

    async def get_categories_for_article(self, article_slug: str) -> list[Category]:
        """Categories of one article, in the article's tag order."""
        item = await self._query.get_by_slug(article_slug)
        if item is None:
            return []
        by_slug = {category.slug: category for category in await self.get_all_categories()}
        return [by_slug[tag.slug] for tag in item.tags if tag.slug in by_slug]

    async def get_related_categories(self, slug: str, limit: int = 4) -> list[Category]:
        """Categories related to slug by shared articles.

        Ranked by the number of articles carrying both tags, then padded
        with the most popular remaining categories. An unknown slug yields
        the most popular categories.
        """
        validate_limit(limit)
        popular = await self.get_all_categories(CategoryOrder.POPULAR)
        if not any(category.slug == slug for category in popular):
            return popular[:limit]

        shared: Counter[str] = Counter()
        for item in await self._query.get_by_tag(slug):
            for tag in item.tags:
                if tag.slug != slug:
                    shared[tag.slug] += 1

        # Stable sort: ties keep popularity order
        related = sorted(
            (category for category in popular if shared[category.slug] > 0),
            key=lambda category: shared[category.slug],
            reverse=True,
        )
        chosen = {category.slug for category in related}
        padding = [
            category for category in popular
            if category.slug != slug and category.slug not in chosen
        ]
        return (related + padding)[:limit]
