"""Provider-agnostic content types for articles and their tags."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Tag:
    """A tag/category attached to an article."""

    name: str
    slug: str
    color: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "slug": self.slug, "color": self.color}


@dataclass(frozen=True)
class Author:
    """Author profile as delivered with an article."""

    name: str
    avatar_url: str = ""
    bio: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "avatar_url": self.avatar_url, "bio": self.bio}


@dataclass(frozen=True)
class ContentItem:
    """A normalized article from any content provider."""

    id: str
    slug: str
    title: str
    published_at: datetime
    summary: str = ""
    body: str = ""
    cover_image_url: str = ""
    updated_at: datetime | None = None
    tags: tuple[Tag, ...] = ()
    author: Author | None = None
    reading_time_label: str | None = None
    view_count: int | None = None
    reaction_count: int | None = None

    def has_tag(self, tag_slug: str) -> bool:
        return any(tag.slug == tag_slug for tag in self.tags)

    def to_dict(self, include_body: bool = True) -> dict[str, Any]:
        """Convert to dict for JSON serialization.

        List views pass include_body=False since bodies can be large.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "summary": self.summary,
            "cover_image_url": self.cover_image_url,
            "published_at": self.published_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "tags": [tag.to_dict() for tag in self.tags],
            "author": self.author.to_dict() if self.author else None,
            "reading_time_label": self.reading_time_label,
            "view_count": self.view_count,
            "reaction_count": self.reaction_count,
        }
        if include_body:
            data["body"] = self.body
        return data
