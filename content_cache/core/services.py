"""Wiring for the content services of one host application."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from content_cache.core.cache import CacheService, Fetcher
from content_cache.core.catalog import CategoryCatalog
from content_cache.core.query import ContentQuery
from content_cache.core.settings import Settings
from content_cache.core.tags import TagCatalog
from content_cache.providers.hashnode import MAX_PAGE_SIZE, HashnodeClient

logger = logging.getLogger(__name__)


@dataclass
class ContentServices:
    """One shared cache plus the read services built on top of it."""

    cache: CacheService
    query: ContentQuery
    categories: CategoryCatalog
    tags: TagCatalog
    client: HashnodeClient | None = None

    def invalidate_catalogs(self) -> None:
        self.categories.invalidate()
        self.tags.invalidate()

    async def aclose(self) -> None:
        await self.cache.aclose()
        if self.client is not None:
            await self.client.aclose()


def build_services(
    settings: Settings,
    fetcher: Fetcher | None = None,
    clock: Callable[[], float] = time.time,
) -> ContentServices:
    """Create the services. Without a fetcher, a HashnodeClient is used."""
    client = None
    fetch_timeout = settings.fetch_timeout
    if fetcher is None:
        client = HashnodeClient(
            host=settings.hashnode_host,
            publication_id=settings.hashnode_publication_id,
            token=settings.hashnode_token,
            endpoint=settings.hashnode_endpoint,
            timeout=settings.fetch_timeout,
            max_items=settings.max_items,
        )
        fetcher = client.as_fetcher()
        # The client timeout applies per page; bound the whole paged fetch
        fetch_timeout = settings.fetch_timeout * max(1, math.ceil(settings.max_items / MAX_PAGE_SIZE))
        if not (settings.hashnode_host or settings.hashnode_publication_id):
            logger.warning("No Hashnode publication configured; the article cache will stay unavailable")

    cache = CacheService(
        fetcher,
        ttl_ms=settings.article_ttl_ms,
        fetch_timeout=fetch_timeout,
        clock=clock,
    )
    query = ContentQuery(cache, default_page_size=settings.page_size)
    return ContentServices(
        cache=cache,
        query=query,
        categories=CategoryCatalog(
            query,
            ttl_ms=settings.category_ttl_ms,
            max_tag_preview=settings.max_tag_preview,
            clock=clock,
        ),
        tags=TagCatalog(query, ttl_ms=settings.tag_ttl_ms, clock=clock),
        client=client,
    )
