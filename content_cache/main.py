from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from content_cache.core.cache import Fetcher
from content_cache.core.catalog import CategoryOrder
from content_cache.core.errors import InvalidPageError, RefreshError
from content_cache.core.services import ContentServices, build_services
from content_cache.core.settings import Settings, configure_logging

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _unavailable(error: RefreshError | None) -> JSONResponse:
    """503 for a cold cache whose first refresh failed (UI shows a retry)."""
    return _error(
        503,
        "Content is temporarily unavailable",
        unavailable=True,
        details=error.to_dict() if error else None,
    )


def create_app(
    settings: Settings | None = None,
    fetcher: Fetcher | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the read API around one shared ContentServices instance."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="content-cache")
    app.state.settings = settings
    app.state.services = build_services(settings, fetcher=fetcher, clock=clock)
    app.state.warmup_task = None

    @app.exception_handler(InvalidPageError)
    async def _invalid_page(request: Request, exc: InvalidPageError) -> JSONResponse:
        return _error(400, str(exc))

    @app.on_event("startup")
    async def _startup() -> None:
        if settings.warm_on_startup:
            # Background warm-up; readers arriving meanwhile join this refresh
            app.state.warmup_task = asyncio.create_task(app.state.services.cache.ensure_fresh())

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.services.aclose()

    def services() -> ContentServices:
        return app.state.services

    def unavailable() -> JSONResponse | None:
        """503 response if the read just served came from a failed cold start.

        Reads the snapshot the preceding call already refreshed; never
        triggers a second fetch.
        """
        snapshot = services().cache.peek()
        if snapshot.unavailable:
            return _unavailable(snapshot.error)
        return None

    # ==================== Articles ====================

    @app.get("/api/articles")
    async def api_articles(page: int = 1, limit: int | None = None):
        """Paginated articles in source (newest-first) order."""
        result = await services().query.list_page(page, limit)
        if result.unavailable:
            return _unavailable(result.error)
        return result.to_dict()

    @app.get("/api/articles/latest")
    async def api_articles_latest(limit: int = 10):
        items = await services().query.get_latest(limit)
        return unavailable() or {"items": [item.to_dict(include_body=False) for item in items]}

    @app.get("/api/articles/trending")
    async def api_articles_trending(limit: int = 6):
        items = await services().query.get_trending(limit)
        return unavailable() or {"items": [item.to_dict(include_body=False) for item in items]}

    @app.get("/api/articles/trending-tags")
    async def api_articles_trending_tags(limit: int = 10):
        tags = await services().tags.get_trending_tags(limit)
        return unavailable() or {"tags": [tag.to_dict() for tag in tags]}

    @app.get("/api/articles/tag/{tag_slug}")
    async def api_articles_by_tag(tag_slug: str, page: int = 1, limit: int | None = None):
        result = await services().query.list_by_tag(tag_slug, page, limit)
        if result.unavailable:
            return _unavailable(result.error)
        return {"tag": tag_slug, **result.to_dict()}

    @app.get("/api/articles/{slug}")
    async def api_article(slug: str):
        """Single article including its body."""
        item = await services().query.get_by_slug(slug)
        if item is None:
            return unavailable() or _error(404, "Article not found")
        return item.to_dict(include_body=True)

    @app.get("/api/articles/{slug}/tags")
    async def api_article_tags(slug: str):
        tags = await services().tags.get_article_tags(slug)
        return unavailable() or {"slug": slug, "tags": [tag.to_dict() for tag in tags]}

    @app.get("/api/articles/{slug}/categories")
    async def api_article_categories(slug: str):
        categories = await services().categories.get_categories_for_article(slug)
        return unavailable() or {
            "slug": slug,
            "categories": [c.to_dict(include_featured=False) for c in categories],
        }

    # ==================== Categories ====================

    @app.get("/api/categories")
    async def api_categories(order: str = CategoryOrder.POPULAR.value):
        try:
            categories = await services().categories.get_all_categories(order)
        except ValueError:
            return _error(400, f"Unknown order: {order}")
        return unavailable() or {"order": order, "categories": [c.to_dict() for c in categories]}

    @app.get("/api/categories/popular")
    async def api_categories_popular(limit: int = 6):
        categories = await services().categories.get_popular_categories(limit)
        return unavailable() or {"categories": [c.to_dict() for c in categories]}

    @app.get("/api/categories/{slug}")
    async def api_category(slug: str):
        category = await services().categories.get_category_by_slug(slug)
        if category is None:
            return unavailable() or _error(404, "Category not found")
        return category.to_dict()

    @app.get("/api/categories/{slug}/articles")
    async def api_category_articles(slug: str, page: int = 1, limit: int | None = None):
        result = await services().query.list_by_tag(slug, page, limit)
        if result.unavailable:
            return _unavailable(result.error)
        return {"category": slug, **result.to_dict()}

    @app.get("/api/categories/{slug}/related")
    async def api_related_categories(slug: str, limit: int = 4):
        categories = await services().categories.get_related_categories(slug, limit)
        return unavailable() or {
            "slug": slug,
            "categories": [c.to_dict(include_featured=False) for c in categories],
        }

    # ==================== Tags ====================

    @app.get("/api/tags")
    async def api_tags():
        tags = await services().tags.get_all_tags()
        return unavailable() or {"tags": [tag.to_dict() for tag in tags]}

    @app.get("/api/tags/{slug}/related")
    async def api_related_tags(slug: str, limit: int = 4):
        tags = await services().tags.get_related_tags(slug, limit)
        return unavailable() or {"slug": slug, "tags": [tag.to_dict() for tag in tags]}

    # ==================== Cache ====================

    @app.get("/api/cache/status")
    def api_cache_status():
        """Current cache state without triggering a refresh."""
        cache = services().cache
        return {
            "name": cache.name,
            "state": cache.refresh_state.value,
            "fresh": cache.is_fresh(),
            "ttl_ms": cache.ttl_ms,
            **cache.peek().to_dict(),
        }

    @app.post("/api/cache/refresh")
    async def api_cache_refresh():
        """Force a refresh; derived catalogs are rebuilt on next read."""
        svc = services()
        snapshot = await svc.cache.ensure_fresh(force_refresh=True)
        svc.invalidate_catalogs()
        status_code = 200 if snapshot.error is None else 502
        return JSONResponse(status_code=status_code, content=snapshot.to_dict())

    return app


# Settings are read at import; the Hashnode HTTP client opens on the first fetch
app = create_app()
