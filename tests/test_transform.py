"""Tests for transform.py"""

from datetime import datetime, timezone

import pytest

from content_cache.core.errors import MalformedRecordError
from content_cache.core.transform import (
    estimate_reading_minutes,
    normalize_slug,
    transform_record,
    transform_records,
)
from content_cache.providers.content_types import Author, Tag


class TestTransformRecord:
    """Tests for current-shape Hashnode post nodes."""

    def test_full_record(self, make_record):
        item = transform_record(make_record(3, tags=["javascript", "react"]))

        assert item.id == "post-3"
        assert item.slug == "post-3"
        assert item.title == "Post 3"
        assert item.summary == "Summary of post 3"
        assert item.cover_image_url == "https://cdn.example.com/3.png"
        assert item.published_at == datetime(2025, 5, 29, 12, 0, tzinfo=timezone.utc)
        assert item.tags == (Tag("Javascript", "javascript"), Tag("React", "react"))
        assert item.author == Author(name="Jane Doe", avatar_url="https://cdn.example.com/jane.png")
        assert item.reading_time_label == "2 min read"
        assert item.view_count == 300
        assert item.reaction_count == 3

    def test_missing_optional_fields_use_defaults(self):
        item = transform_record({"id": "a", "slug": "a", "publishedAt": "2025-01-01T00:00:00Z"})

        assert item.title == "Untitled"
        assert item.summary == ""
        assert item.body == ""
        assert item.cover_image_url == ""
        assert item.tags == ()
        assert item.author is None
        assert item.updated_at is None
        assert item.reading_time_label is None
        assert item.view_count is None
        assert item.reaction_count is None

    def test_null_nested_fields(self):
        item = transform_record({
            "id": "a",
            "slug": "a",
            "publishedAt": "2025-01-01T00:00:00Z",
            "content": None,
            "coverImage": None,
            "tags": None,
            "author": None,
        })
        assert item.body == ""
        assert item.cover_image_url == ""
        assert item.tags == ()

    def test_is_deterministic(self, make_record):
        raw = make_record(1, tags=["python"])
        assert transform_record(raw) == transform_record(raw)

    def test_does_not_mutate_input(self, make_record):
        raw = make_record(1, tags=["python"])
        before = repr(raw)
        transform_record(raw)
        assert repr(raw) == before


class TestRequiredFields:
    """Records without id, slug or publish date are malformed."""

    @pytest.mark.parametrize("field", ["id", "slug", "publishedAt"])
    def test_missing_required_field(self, make_record, field):
        raw = make_record(1)
        del raw[field]
        with pytest.raises(MalformedRecordError):
            transform_record(raw)

    def test_blank_slug(self, make_record):
        with pytest.raises(MalformedRecordError, match="slug"):
            transform_record(make_record(1, slug="   "))

    def test_unparseable_date(self, make_record):
        with pytest.raises(MalformedRecordError, match="publish date"):
            transform_record(make_record(1, publishedAt="yesterday"))

    def test_not_a_mapping(self):
        with pytest.raises(MalformedRecordError):
            transform_record(["not", "a", "record"])


class TestLegacyShape:
    """Older API shape: _id, contentMarkdown, plain coverImage, dateAdded."""

    def test_legacy_record(self):
        item = transform_record({
            "_id": "legacy-1",
            "slug": "old-post",
            "title": "Old post",
            "contentMarkdown": "one two three",
            "coverImage": "https://cdn.example.com/old.png",
            "dateAdded": "2021-03-04T05:06:07.000Z",
            "readTime": 4,
        })
        assert item.id == "legacy-1"
        assert item.body == "one two three"
        assert item.cover_image_url == "https://cdn.example.com/old.png"
        assert item.published_at.year == 2021
        assert item.reading_time_label == "4 min read"


class TestTags:
    def test_duplicate_tag_slugs_keep_first(self, make_record):
        raw = make_record(1, tags=[])
        raw["tags"] = [
            {"name": "JS", "slug": "javascript", "color": "#111111"},
            {"name": "JavaScript", "slug": "javascript", "color": "#222222"},
        ]
        item = transform_record(raw)
        assert item.tags == (Tag("JS", "javascript", "#111111"),)

    def test_slug_derived_from_name(self, make_record):
        raw = make_record(1)
        raw["tags"] = [{"name": "Clean Code"}]
        assert transform_record(raw).tags == (Tag("Clean Code", "clean-code"),)

    def test_tag_without_name_or_slug_dropped(self, make_record):
        raw = make_record(1)
        raw["tags"] = [{"color": "#fff"}, "garbage", {"name": "Go", "slug": "go"}]
        assert [tag.slug for tag in transform_record(raw).tags] == ["go"]


class TestReadingTime:
    def test_estimated_from_body(self, make_record):
        raw = make_record(1, readTimeInMinutes=None)
        raw["content"] = {"markdown": "word " * 1000}
        assert transform_record(raw).reading_time_label == "5 min read"

    def test_minimum_one_minute(self):
        assert estimate_reading_minutes("short") == 1


class TestTransformRecords:
    def test_skips_malformed_records(self, make_record):
        raws = [make_record(0), {"title": "no id"}, make_record(1, slug=""), make_record(2)]
        items, skipped = transform_records(raws)

        assert [item.slug for item in items] == ["post-0", "post-2"]
        assert skipped == 2


def test_normalize_slug():
    assert normalize_slug("Clean Code") == "clean-code"
    assert normalize_slug("  Node.js ") == "nodejs"


class TestBadFieldValues:
    """Wrong-typed or non-finite values are dropped or skip one record."""

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "many", [1], True])
    def test_non_numeric_counts_ignored(self, make_record, value):
        item = transform_record(make_record(1, views=value, reactionCount=value))
        assert item.view_count is None
        assert item.reaction_count is None

    def test_non_finite_read_time_falls_back_to_estimate(self, make_record):
        item = transform_record(make_record(1, readTimeInMinutes=float("nan")))
        assert item.reading_time_label == "2 min read"

    def test_unreadable_record_skipped_not_raised(self, make_record):
        class Unreadable(dict):
            def get(self, *args, **kwargs):
                raise RuntimeError("broken record")

        raws = [make_record(0), Unreadable(make_record(1)), make_record(2, views=float("nan"))]
        items, skipped = transform_records(raws)

        assert [item.slug for item in items] == ["post-0", "post-2"]
        assert items[1].view_count is None
        assert skipped == 1
