"""
Horizon News API Client.
Reads the news API for rendering layers, memoizing responses in a QueryCache.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from cache import QueryCache, build_query_key
from resilience import RetryConfig, fetch_with_retry

logger = logging.getLogger(__name__)


class NewsApiClient:
    """Client for the Horizon News HTTP API."""

    def __init__(
        self,
        base_url: str,
        cache: QueryCache,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[dict[str, str]] = None,
        verbose: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.retry_config = retry_config
        self.client = client
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.verbose = verbose

    async def _cached_get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Serve ``path`` from the cache, fetching and storing it on a miss.

        Args:
            path: API path (e.g. /api/news)
            params: Query parameters; also part of the cache key

        Returns:
            The decoded JSON payload
        """
        key = build_query_key(path, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached

        payload = await fetch_with_retry(
            f"{self.base_url}{key}",
            headers=self.headers,
            config=self.retry_config,
            client=self.client,
            verbose=self.verbose,
        )
        self.cache.set(key, payload)
        return payload

    async def list_news(
        self,
        tags: Optional[list[str]] = None,
        show_on_home: Optional[bool] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch the article list.

        Args:
            tags: Keep articles carrying any of these tags
            show_on_home: Filter on the home-feed flag

        Returns:
            Articles, newest first
        """
        params: dict[str, Any] = {}
        if tags:
            params["tags"] = ",".join(sorted(set(tags)))
        if show_on_home is not None:
            params["showOnHome"] = "true" if show_on_home else "false"
        return await self._cached_get("/api/news", params)

    async def list_home_news(self) -> list[dict[str, Any]]:
        """Articles selected for the home feed."""
        return await self.list_news(show_on_home=True)

    async def get_news(self, news_id: str) -> dict[str, Any]:
        return await self._cached_get(f"/api/news/{quote(news_id, safe='')}")

    async def list_tags(self) -> list[dict[str, Any]]:
        return await self._cached_get("/api/tags")

    async def set_show_on_home(self, news_id: str, show_on_home: bool) -> dict[str, Any]:
        """
        Toggle an article's home-feed flag.

        The whole cache is cleared once the write succeeds, so the next
        read observes the change.
        """
        result = await fetch_with_retry(
            f"{self.base_url}/api/news/{quote(news_id, safe='')}/showOnHome",
            method="PATCH",
            headers=self.headers,
            json={"showOnHome": show_on_home},
            config=self.retry_config,
            client=self.client,
            verbose=self.verbose,
        )
        self.cache.clear()
        return result
