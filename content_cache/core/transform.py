"""Normalization of raw remote records into ContentItems.

Pure functions only: no network, no cache access, no clock. Two raw shapes
are accepted:

- current Hashnode Post nodes (id, brief, content.markdown, coverImage.url,
  publishedAt, readTimeInMinutes, author.profilePicture)
- the legacy shape (_id, contentMarkdown, coverImage as string, dateAdded,
  readTime)
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from content_cache.core.errors import MalformedRecordError
from content_cache.providers.content_types import Author, ContentItem, Tag

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def normalize_slug(text: str) -> str:
    """Turn a display name into a URL-safe slug ("Clean Code" -> "clean-code")."""
    slug = _NON_SLUG_CHARS.sub("", text.strip().lower())
    return _WHITESPACE.sub("-", slug)


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return ""


def _nested(raw: Mapping[str, Any], key: str, inner: str) -> Any:
    """Read raw[key][inner], tolerating raw[key] being a plain value or missing."""
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value.get(inner)
    return value


def _parse_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> int | None:
    # bool is an int subclass; never treat True as a count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def estimate_reading_minutes(markdown: str) -> int:
    """Estimate reading time in minutes (200 wpm, at least 1)."""
    words = len(markdown.split())
    return max(1, round(words / WORDS_PER_MINUTE))


def reading_time_label(minutes: Any, body: str) -> str | None:
    explicit = _optional_int(minutes)
    if explicit is not None and explicit > 0:
        return f"{explicit} min read"
    if body.strip():
        return f"{estimate_reading_minutes(body)} min read"
    return None


def _parse_tags(raw_tags: Any) -> tuple[Tag, ...]:
    if not isinstance(raw_tags, list):
        return ()

    tags: list[Tag] = []
    seen: set[str] = set()
    for raw_tag in raw_tags:
        if not isinstance(raw_tag, Mapping):
            continue
        name = _text(raw_tag.get("name")).strip()
        slug = _text(raw_tag.get("slug")).strip() or normalize_slug(name)
        if not slug:
            continue
        # Tag slugs are unique within an item; first entry wins
        if slug in seen:
            continue
        seen.add(slug)
        color = _text(raw_tag.get("color")).strip() or None
        tags.append(Tag(name=name or slug, slug=slug, color=color))
    return tuple(tags)


def _parse_author(raw_author: Any) -> Author | None:
    if not isinstance(raw_author, Mapping):
        return None
    name = _text(raw_author.get("name")).strip()
    if not name:
        return None
    avatar = _text(raw_author.get("profilePicture")) or _text(raw_author.get("image"))
    return Author(
        name=name,
        avatar_url=avatar,
        bio=_text(_nested(raw_author, "bio", "text")),
    )


def transform_record(raw: Mapping[str, Any]) -> ContentItem:
    """Convert a raw remote record into a ContentItem.

    Raises:
        MalformedRecordError: If id, slug or publish date is missing.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"Expected a mapping, got {type(raw).__name__}")

    item_id = _text(raw.get("id")) or _text(raw.get("_id"))
    if not item_id:
        raise MalformedRecordError("Record has no id")

    slug = _text(raw.get("slug")).strip()
    if not slug:
        raise MalformedRecordError(f"Record {item_id} has no slug")

    published_at = _parse_datetime(raw.get("publishedAt") or raw.get("dateAdded"))
    if published_at is None:
        raise MalformedRecordError(f"Record {item_id} ({slug}) has no valid publish date")

    body = _text(_nested(raw, "content", "markdown")) or _text(raw.get("contentMarkdown"))

    return ContentItem(
        id=item_id,
        slug=slug,
        title=_text(raw.get("title")).strip() or "Untitled",
        summary=_text(raw.get("brief")),
        body=body,
        cover_image_url=_text(_nested(raw, "coverImage", "url")),
        published_at=published_at,
        updated_at=_parse_datetime(raw.get("updatedAt")),
        tags=_parse_tags(raw.get("tags")),
        author=_parse_author(raw.get("author")),
        reading_time_label=reading_time_label(
            raw.get("readTimeInMinutes", raw.get("readTime")), body
        ),
        view_count=_optional_int(raw.get("views")),
        reaction_count=_optional_int(raw.get("reactionCount")),
    )


def transform_records(raws: Iterable[Mapping[str, Any]]) -> tuple[list[ContentItem], int]:
    """Transform a batch, skipping malformed records.

    Returns:
        Tuple of (items in source order, number of skipped records)
    """
    items: list[ContentItem] = []
    skipped = 0
    for index, raw in enumerate(raws):
        try:
            items.append(transform_record(raw))
        except MalformedRecordError as e:
            skipped += 1
            logger.warning(f"Skipping malformed record #{index}: {e}")
        except Exception as e:
            # A wrong-typed field in one record must not sink the batch
            skipped += 1
            logger.warning(f"Skipping unreadable record #{index}: {type(e).__name__}: {e}")
    return items, skipped
