"""Secondary indexes derived from the canonical item collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from content_cache.providers.content_types import ContentItem, Tag


@dataclass(frozen=True)
class ContentIndexes:
    """Lookup structures built from one generation of items.

    Never mutated after construction; a refresh builds a new instance.
    """

    by_slug: dict[str, ContentItem] = field(default_factory=dict)
    by_tag: dict[str, tuple[ContentItem, ...]] = field(default_factory=dict)
    # First-occurrence metadata per tag slug, in first-seen order
    tags: dict[str, Tag] = field(default_factory=dict)


def dedupe_by_slug(items: Iterable[ContentItem]) -> list[ContentItem]:
    """Drop earlier items whose slug reappears later (last write wins).

    Surviving items keep their source order.
    """
    items = list(items)
    last_index = {item.slug: index for index, item in enumerate(items)}
    return [item for index, item in enumerate(items) if last_index[item.slug] == index]


def build_indexes(items: Iterable[ContentItem]) -> ContentIndexes:
    """Build by-slug and by-tag indexes in a single pass.

    - by_slug: later items overwrite earlier ones with the same slug
    - by_tag: items keep their relative source order
    - tags: name/color come from the first item carrying the tag
    """
    by_slug: dict[str, ContentItem] = {}
    by_tag: dict[str, list[ContentItem]] = {}
    tags: dict[str, Tag] = {}

    for item in items:
        by_slug[item.slug] = item
        for tag in item.tags:
            bucket = by_tag.get(tag.slug)
            if bucket is None:
                bucket = by_tag[tag.slug] = []
                tags[tag.slug] = tag
            bucket.append(item)

    return ContentIndexes(
        by_slug=by_slug,
        by_tag={slug: tuple(bucket) for slug, bucket in by_tag.items()},
        tags=tags,
    )
