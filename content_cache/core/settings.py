from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_env: str
    log_level: str
    hashnode_endpoint: str
    hashnode_host: str
    hashnode_publication_id: str
    hashnode_token: str
    article_ttl_ms: int
    category_ttl_ms: int
    tag_ttl_ms: int
    page_size: int
    max_tag_preview: int
    fetch_timeout: float
    max_items: int
    warm_on_startup: bool

    @staticmethod
    def from_env() -> "Settings":
        def _b(name: str, default: str) -> bool:
            return os.getenv(name, default).strip() in ("1", "true", "True", "yes", "YES")

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        return Settings(
            app_env=os.getenv("APP_ENV", "dev").strip(),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            hashnode_endpoint=os.getenv("HASHNODE_ENDPOINT", "https://gql.hashnode.com").strip(),
            hashnode_host=os.getenv("HASHNODE_HOST", "").strip(),
            hashnode_publication_id=os.getenv("HASHNODE_PUBLICATION_ID", "").strip(),
            hashnode_token=os.getenv("HASHNODE_API_TOKEN", "").strip(),
            article_ttl_ms=_i("ARTICLE_CACHE_TTL_MS", "600000"),
            category_ttl_ms=_i("CATEGORY_CACHE_TTL_MS", "1800000"),
            tag_ttl_ms=_i("TAG_CACHE_TTL_MS", "3600000"),
            page_size=_i("DEFAULT_PAGE_SIZE", "10"),
            max_tag_preview=_i("MAX_TAG_PREVIEW", "4"),
            fetch_timeout=_f("FETCH_TIMEOUT_SECONDS", "15"),
            max_items=_i("MAX_REMOTE_ITEMS", "200"),
            warm_on_startup=_b("CONTENT_CACHE_WARM_ON_STARTUP", "1"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Basic log format for the service; no-op if logging is already configured."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
