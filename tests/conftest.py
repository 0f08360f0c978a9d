"""Shared fixtures: raw Hashnode-style records, a fake clock, a stub fetcher."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

BASE_DATE = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _make_record(index, tags=(), **overrides):
    """Raw post node; higher index = older post."""
    record = {
        "id": f"post-{index}",
        "slug": f"post-{index}",
        "title": f"Post {index}",
        "brief": f"Summary of post {index}",
        "content": {"markdown": "word " * 400},
        "coverImage": {"url": f"https://cdn.example.com/{index}.png"},
        "publishedAt": (BASE_DATE - timedelta(days=index)).isoformat().replace("+00:00", "Z"),
        "readTimeInMinutes": 2,
        "views": 100 * index,
        "reactionCount": index,
        "tags": [{"name": slug.title(), "slug": slug} for slug in tags],
        "author": {"name": "Jane Doe", "profilePicture": "https://cdn.example.com/jane.png"},
    }
    record.update(overrides)
    return record


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class StubFetcher:
    """Counts calls and returns canned records or raises."""

    def __init__(self, records=None, delay=0.0):
        self.records = list(records or [])
        self.delay = delay
        self.error = None
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stub_fetcher_cls():
    return StubFetcher


@pytest.fixture
def scenario_records():
    """25 records: javascript on 0-14, react on 10-19 (5 overlap), 20-24 untagged."""
    records = []
    for index in range(25):
        tags = []
        if index < 15:
            tags.append("javascript")
        if 10 <= index < 20:
            tags.append("react")
        records.append(_make_record(index, tags=tags))
    return records
