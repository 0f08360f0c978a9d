"""Tag utilities: deterministic colors and tag-level aggregates."""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from content_cache.core.query import ContentQuery, validate_limit
from content_cache.core.transform import normalize_slug
from content_cache.core.ttl import TTLMemo
from content_cache.providers.content_types import Tag

logger = logging.getLogger(__name__)

DEFAULT_TAG_TTL_MS = 60 * 60 * 1000  # 1 hour

# Brand colors for well-known tags
KNOWN_TAG_COLORS = {
    "react": "#61DAFB",
    "javascript": "#F7DF1E",
    "typescript": "#3178C6",
    "nextjs": "#000000",
    "css": "#1572B6",
    "html": "#E34F26",
    "nodejs": "#339933",
    "graphql": "#E10098",
    "aws": "#FF9900",
    "testing": "#FF6C37",
    "clean-code": "#4285F4",
    "performance": "#FF4500",
    "docker": "#2496ED",
    "kubernetes": "#326CE5",
    "golang": "#00ADD8",
    "python": "#3776AB",
    "machinelearning": "#FF6F00",
    "machine-learning": "#FF6F00",
    "database": "#4479A1",
    "cloud": "#0089D6",
    "security": "#EE0000",
    "redux": "#764ABC",
    "software-architecture": "#7B1FA2",
}

# Order matters: colors are picked by index
TAG_PALETTE = (
    "#FF2D55",
    "#007AFF",
    "#34C759",
    "#AF52DE",
    "#FF9500",
    "#5AC8FA",
    "#FF4B5C",
    "#6C5CE7",
    "#00B4D8",
    "#00917C",
    "#F72585",
)


def stable_hash(text: str) -> int:
    """Code-point sum. Unlike hash(), identical across processes."""
    return sum(ord(char) for char in text)


def resolve_tag_color(slug: str, explicit: str | None = None) -> str:
    """Pick a color for a tag.

    Rules (in order):
    1. Explicit color carried on the tag
    2. Known brand color for the slug
    3. Palette entry chosen by a stable hash of the slug
    """
    if explicit:
        return explicit
    key = normalize_slug(slug)
    if key in KNOWN_TAG_COLORS:
        return KNOWN_TAG_COLORS[key]
    return TAG_PALETTE[stable_hash(key) % len(TAG_PALETTE)]


def with_color(tag: Tag) -> Tag:
    return Tag(name=tag.name, slug=tag.slug, color=resolve_tag_color(tag.slug, tag.color))


@dataclass(frozen=True)
class TagSummary:
    """A tag with its usage count across the collection."""

    name: str
    slug: str
    color: str
    article_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "color": self.color,
            "article_count": self.article_count,
        }


class TagCatalog:
    """Tag-level views computed from the content query API."""

    def __init__(
        self,
        query: ContentQuery,
        *,
        ttl_ms: int = DEFAULT_TAG_TTL_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._query = query
        self._memo: TTLMemo[Any] = TTLMemo(ttl_ms, clock)

    def invalidate(self) -> None:
        self._memo.clear()

    async def get_all_tags(self) -> list[TagSummary]:
        """All tags, most used first (ties keep first-seen order)."""
        cached = self._memo.get("all")
        if cached is not None:
            return list(cached)

        snapshot = await self._query.snapshot()
        summaries = [
            TagSummary(
                name=tag.name,
                slug=slug,
                color=resolve_tag_color(slug, tag.color),
                article_count=len(snapshot.indexes.by_tag.get(slug, ())),
            )
            for slug, tag in snapshot.indexes.tags.items()
        ]
        summaries.sort(key=lambda summary: summary.article_count, reverse=True)
        logger.debug(f"Computed {len(summaries)} tag summaries (generation {snapshot.generation})")

        if not snapshot.unavailable:
            self._memo.set("all", summaries)
        return list(summaries)

    async def get_trending_tags(self, limit: int = 10) -> list[TagSummary]:
        validate_limit(limit)
        return (await self.get_all_tags())[:limit]

    async def get_article_tags(self, article_slug: str) -> list[Tag]:
        """Tags of one article with canonical names and resolved colors.

        Returns an empty list for unknown articles.
        """
        key = ("article", article_slug)
        cached = self._memo.get(key)
        if cached is not None:
            return list(cached)

        snapshot = await self._query.snapshot()
        item = snapshot.indexes.by_slug.get(article_slug)
        if item is None:
            return []

        tags = [with_color(snapshot.indexes.tags.get(tag.slug, tag)) for tag in item.tags]
        self._memo.set(key, tags)
        return list(tags)

    async def get_related_tags(self, tag_slug: str, limit: int = 4) -> list[TagSummary]:
        """Tags that co-occur with tag_slug, most shared articles first.

        Falls back to the most used tags when tag_slug is unknown.
        """
        validate_limit(limit)
        all_tags = await self.get_all_tags()
        if not all_tags:
            return []
        tagged = await self._query.get_by_tag(tag_slug)
        if not tagged:
            return [summary for summary in all_tags if summary.slug != tag_slug][:limit]

        shared: Counter[str] = Counter()
        for item in tagged:
            for tag in item.tags:
                if tag.slug != tag_slug:
                    shared[tag.slug] += 1

        by_slug = {summary.slug: summary for summary in all_tags}
        ranked = sorted(
            (slug for slug in shared if slug in by_slug),
            key=lambda slug: (-shared[slug], -by_slug[slug].article_count),
        )
        return [by_slug[slug] for slug in ranked[:limit]]
