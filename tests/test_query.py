"""Tests for query.py"""

import pytest

from content_cache.core.cache import CacheService
from content_cache.core.errors import InvalidPageError, RefreshErrorType, TransientFetchError
from content_cache.core.query import ContentQuery, paginate


@pytest.fixture
def fetcher(stub_fetcher_cls, scenario_records):
    return stub_fetcher_cls(scenario_records)


@pytest.fixture
def query(fetcher, clock):
    return ContentQuery(CacheService(fetcher, clock=clock))


@pytest.mark.asyncio
class TestScenario:
    """25 records: javascript x15, react x10, 5 overlapping."""

    async def test_get_by_tag_javascript(self, query):
        items = await query.get_by_tag("javascript", 20)
        assert len(items) == 15
        assert [item.slug for item in items] == [f"post-{i}" for i in range(15)]

    async def test_get_by_tag_react(self, query):
        items = await query.get_by_tag("react")
        assert [item.slug for item in items] == [f"post-{i}" for i in range(10, 20)]

    async def test_first_page_has_more(self, query):
        page = await query.list_page(1, 10)
        assert page.has_more is True
        assert page.total == 25

    async def test_last_page(self, query):
        page = await query.list_page(3, 10)
        assert len(page.items) == 5
        assert page.has_more is False

    async def test_page_past_the_end_is_empty(self, query):
        page = await query.list_page(4, 10)
        assert page.items == []
        assert page.has_more is False


@pytest.mark.asyncio
class TestIndexConsistency:
    async def test_every_item_reachable_by_slug_and_tag(self, query):
        for item in await query.get_all():
            assert await query.get_by_slug(item.slug) is item
            for tag in item.tags:
                assert item in await query.get_by_tag(tag.slug)

    async def test_reads_share_one_fetch(self, query, fetcher):
        await query.get_all()
        await query.get_by_slug("post-1")
        await query.get_by_tag("react")
        await query.list_page(1)
        assert fetcher.calls == 1


@pytest.mark.asyncio
class TestPagination:
    @pytest.mark.parametrize("page_size", [1, 3, 7, 10, 25, 40])
    async def test_pages_concatenate_to_get_all(self, query, page_size):
        collected = []
        page_number = 1
        while True:
            page = await query.list_page(page_number, page_size)
            collected.extend(page.items)
            if not page.has_more:
                break
            page_number += 1

        assert collected == await query.get_all()

    async def test_default_page_size(self, fetcher, clock):
        query = ContentQuery(CacheService(fetcher, clock=clock), default_page_size=4)
        page = await query.list_page(1)
        assert page.page_size == 4
        assert len(page.items) == 4

    @pytest.mark.parametrize("page,page_size", [(0, 10), (-1, 10), (1, 0), (1, -5)])
    async def test_out_of_range_rejected(self, query, fetcher, page, page_size):
        with pytest.raises(InvalidPageError):
            await query.list_page(page, page_size)
        # Rejected before touching the cache
        assert fetcher.calls == 0

    async def test_negative_limit_rejected(self, query):
        with pytest.raises(InvalidPageError):
            await query.get_by_tag("react", -1)

    async def test_list_by_tag(self, query):
        page = await query.list_by_tag("javascript", 2, 10)
        assert [item.slug for item in page.items] == [f"post-{i}" for i in range(10, 15)]
        assert page.has_more is False
        assert page.total == 15


@pytest.mark.asyncio
class TestNotFound:
    async def test_unknown_slug_is_none(self, query):
        assert await query.get_by_slug("does-not-exist") is None

    async def test_unknown_tag_is_empty(self, query):
        assert await query.get_by_tag("cobol") == []

    async def test_unknown_tag_page(self, query):
        page = await query.list_by_tag("cobol", 1)
        assert page.items == []
        assert page.total == 0
        assert page.unavailable is False


@pytest.mark.asyncio
class TestOrderings:
    async def test_latest_sorts_copy(self, stub_fetcher_cls, make_record, clock):
        records = [make_record(index) for index in (3, 0, 7, 1)]
        query = ContentQuery(CacheService(stub_fetcher_cls(records), clock=clock))

        latest = await query.get_latest(3)

        assert [item.slug for item in latest] == ["post-0", "post-1", "post-3"]
        # Cache order untouched
        assert [item.slug for item in await query.get_all()] == ["post-3", "post-0", "post-7", "post-1"]

    async def test_trending_by_views(self, query):
        trending = await query.get_trending(3)
        assert [item.slug for item in trending] == ["post-24", "post-23", "post-22"]


@pytest.mark.asyncio
class TestUnavailable:
    async def test_cold_failure_flags_page(self, stub_fetcher_cls, clock):
        fetcher = stub_fetcher_cls()
        fetcher.error = TransientFetchError("down", RefreshErrorType.HTTP_5XX)
        query = ContentQuery(CacheService(fetcher, clock=clock))

        page = await query.list_page(1, 10)

        assert page.items == []
        assert page.unavailable is True
        assert page.error.error_type == RefreshErrorType.HTTP_5XX
        assert await query.get_all() == []

    async def test_stale_data_served_after_failure(self, query, fetcher, clock):
        before = await query.get_all()
        fetcher.error = TransientFetchError("down", RefreshErrorType.TIMEOUT)
        clock.advance(3600)

        page = await query.list_page(1, 100)

        assert page.items == before
        assert page.unavailable is False
        assert page.error.error_type == RefreshErrorType.TIMEOUT


@pytest.mark.asyncio
async def test_peek_does_not_fetch(query, fetcher):
    assert query.peek() == []
    assert fetcher.calls == 0

    await query.get_all()
    assert len(query.peek()) == 25


def test_paginate_without_snapshot():
    page = paginate([], 1, 5)
    assert page.items == []
    assert page.has_more is False
    assert page.unavailable is False


def test_invalid_default_page_size(stub_fetcher_cls):
    with pytest.raises(ValueError):
        ContentQuery(CacheService(stub_fetcher_cls()), default_page_size=0)
