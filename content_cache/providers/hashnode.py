"""Hashnode GraphQL API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from content_cache.core.errors import RefreshErrorType, TransientFetchError

logger = logging.getLogger(__name__)

HASHNODE_API_URL = "https://gql.hashnode.com"

# Hashnode caps `first` at 50
MAX_PAGE_SIZE = 50

_POST_FIELDS = """
        edges {
          node {
            id
            title
            slug
            brief
            publishedAt
            updatedAt
            readTimeInMinutes
            views
            reactionCount
            content { markdown }
            coverImage { url }
            tags { name slug }
            author {
              name
              profilePicture
              bio { text }
            }
          }
        }
        pageInfo {
          hasNextPage
          endCursor
        }
"""

GET_POSTS_BY_HOST = (
    """
  query GetPostsByHost($host: String!, $first: Int!, $after: String) {
    publication(host: $host) {
      posts(first: $first, after: $after) {"""
    + _POST_FIELDS
    + """
      }
    }
  }
"""
)

GET_POSTS_BY_ID = (
    """
  query GetPostsById($id: ObjectId!, $first: Int!, $after: String) {
    publication(id: $id) {
      posts(first: $first, after: $after) {"""
    + _POST_FIELDS
    + """
      }
    }
  }
"""
)


class HashnodeError(TransientFetchError):
    """Base exception for Hashnode API errors."""

    error_type = RefreshErrorType.INVALID_RESPONSE


class HashnodeAuthError(HashnodeError):
    """Authentication failed."""

    error_type = RefreshErrorType.AUTH


class HashnodeRateLimitError(HashnodeError):
    """Rate limit exceeded after all retries."""

    error_type = RefreshErrorType.RATE_LIMITED


class HashnodeResponseError(HashnodeError):
    """GraphQL errors or an unexpected response shape."""


class HashnodeConfigError(HashnodeError):
    """Neither a publication host nor a publication id is configured."""

    error_type = RefreshErrorType.CONFIG


class HashnodeClient:
    """Client for the Hashnode public GraphQL API.

    Only one query is issued: the most recent posts of one publication,
    paged with cursors.
    """

    def __init__(
        self,
        *,
        host: str = "",
        publication_id: str = "",
        token: str = "",
        endpoint: str = HASHNODE_API_URL,
        timeout: float = 15.0,
        page_size: int = MAX_PAGE_SIZE,
        max_items: int = 200,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        self._host = host.strip()
        self._publication_id = publication_id.strip()
        self._endpoint = endpoint
        self._page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self._max_items = max_items
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay

        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = token
        self._timeout = timeout

        # Created on first request, so constructing a client opens nothing
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "HashnodeClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def _post_with_retry(self, payload: dict[str, Any]) -> httpx.Response:
        """POST with exponential backoff retry on 429.

        Raises:
            HashnodeRateLimitError: If rate limited after all retries
            HashnodeAuthError: If authentication fails
            httpx.HTTPStatusError: For other non-2xx responses
        """
        client = await self._get_client()
        delay = self._base_delay

        for attempt in range(self._max_retries + 1):
            resp = await client.post(self._endpoint, json=payload)

            if resp.status_code in (401, 403):
                raise HashnodeAuthError(f"Hashnode rejected credentials ({resp.status_code})")

            if resp.status_code == 429:
                if attempt == self._max_retries:
                    raise HashnodeRateLimitError(
                        f"Rate limit exceeded after {self._max_retries} retries"
                    )

                retry_after = resp.headers.get("Retry-After")
                try:
                    wait_time = float(retry_after) if retry_after else delay
                except ValueError:
                    wait_time = delay

                wait_time = min(wait_time, self._max_delay)
                logger.warning(
                    f"Rate limited (429). Waiting {wait_time:.1f}s "
                    f"(attempt {attempt + 1}/{self._max_retries + 1})"
                )
                await asyncio.sleep(wait_time)
                delay = min(delay * 2, self._max_delay)
                continue

            resp.raise_for_status()
            return resp

        raise HashnodeRateLimitError("Rate limit handling failed")

    async def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its `data` member."""
        resp = await self._post_with_retry({"query": query, "variables": variables})
        try:
            body = resp.json()
        except ValueError as e:
            raise HashnodeResponseError(f"Invalid JSON from Hashnode: {e}") from e

        if not isinstance(body, dict):
            raise HashnodeResponseError("Unexpected response body from Hashnode")

        if body.get("errors"):
            messages = ", ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in body["errors"]
            )
            raise HashnodeResponseError(f"GraphQL error: {messages}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise HashnodeResponseError("Hashnode response has no data")
        return data

    def _posts_query(self) -> tuple[str, dict[str, Any]]:
        if self._host:
            return GET_POSTS_BY_HOST, {"host": self._host}
        if self._publication_id:
            return GET_POSTS_BY_ID, {"id": self._publication_id}
        raise HashnodeConfigError("Set HASHNODE_HOST or HASHNODE_PUBLICATION_ID")

    async def fetch_posts(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Fetch up to `limit` most recent raw post nodes.

        Args:
            limit: Maximum number of posts (defaults to max_items)

        Returns:
            Raw post nodes in publication order (newest first)
        """
        limit = self._max_items if limit is None else limit
        query, variables = self._posts_query()

        posts: list[dict[str, Any]] = []
        cursor: str | None = None

        while len(posts) < limit:
            data = await self.query(
                query,
                {**variables, "first": min(self._page_size, limit - len(posts)), "after": cursor},
            )

            publication = data.get("publication")
            if not isinstance(publication, dict):
                raise HashnodeResponseError("Publication not found")

            connection = publication.get("posts") or {}
            edges = connection.get("edges")
            if not isinstance(edges, list):
                raise HashnodeResponseError("Invalid posts connection in Hashnode response")

            for edge in edges:
                # Malformed nodes are passed through; the transformer drops them
                node = edge.get("node") if isinstance(edge, dict) else None
                posts.append(node if node is not None else {})

            page_info = connection.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor or not edges:
                break

        logger.info(f"Fetched {len(posts)} posts from Hashnode")
        return posts[:limit]

    def as_fetcher(self):
        """Zero-argument coroutine function for CacheService."""

        async def fetcher() -> list[dict[str, Any]]:
            return await self.fetch_posts()

        return fetcher
