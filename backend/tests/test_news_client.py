"""
Tests for the cached news API client.
"""

import json

import httpx
import pytest

from cache import QueryCache
from exceptions import FetchError
from news_client import NewsApiClient
from resilience import RetryConfig

ARTICLE = {"id": "n1", "title": "AI 是否會取代新聞記者？", "showOnHome": True, "tags": [{"id": "t1", "name": "AI"}]}


class FakeNewsApi:
    """Records requests and serves canned news API responses."""

    def __init__(self):
        self.requests = []
        self.articles = [dict(ARTICLE)]
        self.fail = False

    def __call__(self, request):
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503)
        if request.method == "PATCH":
            body = json.loads(request.content)
            self.articles[0]["showOnHome"] = body["showOnHome"]
            return httpx.Response(200, json={"message": "Updated", "news": self.articles[0]})
        if request.url.path == "/api/tags":
            return httpx.Response(200, json=[{"id": "t1", "name": "AI"}])
        if request.url.path == "/api/news/n1":
            return httpx.Response(200, json=self.articles[0])
        return httpx.Response(200, json=self.articles)


@pytest.fixture
def api():
    return FakeNewsApi()


@pytest.fixture
def news_client(api, clock):
    return NewsApiClient(
        base_url="http://news.test/",
        cache=QueryCache(ttl=60, timer=clock),
        retry_config=RetryConfig(max_attempts=2, base_delay=0.01, max_delay=0.01, exponential_base=2.0, timeout=1.0),
        client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
    )


class TestNewsApiClient:
    """Tests for NewsApiClient caching and invalidation."""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, news_client, api):
        first = await news_client.list_news()
        second = await news_client.list_news()

        assert first == second == [ARTICLE]
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_refetch_after_ttl(self, news_client, api, clock):
        await news_client.list_news()
        clock.advance(60)
        await news_client.list_news()

        assert len(api.requests) == 2

    @pytest.mark.asyncio
    async def test_filters_form_separate_entries(self, news_client, api):
        await news_client.list_news(tags=["政治", "AI"])
        await news_client.list_news(tags=["AI", "政治"])
        await news_client.list_home_news()

        assert len(api.requests) == 2
        assert api.requests[0].url.params["tags"] == "AI,政治"
        assert api.requests[1].url.params["showOnHome"] == "true"

    @pytest.mark.asyncio
    async def test_get_news_and_tags(self, news_client, api):
        assert (await news_client.get_news("n1"))["id"] == "n1"
        assert await news_client.list_tags() == [{"id": "t1", "name": "AI"}]
        assert [r.url.path for r in api.requests] == ["/api/news/n1", "/api/tags"]

    @pytest.mark.asyncio
    async def test_set_show_on_home_clears_cache(self, news_client, api):
        """A write makes the next read go back to the API."""
        await news_client.list_news()
        result = await news_client.set_show_on_home("n1", False)
        articles = await news_client.list_news()

        assert result["message"] == "Updated"
        assert articles[0]["showOnHome"] is False
        assert [r.method for r in api.requests] == ["GET", "PATCH", "GET"]

    @pytest.mark.asyncio
    async def test_failed_fetch_not_cached(self, news_client, api):
        api.fail = True
        with pytest.raises(FetchError):
            await news_client.list_news()

        api.fail = False
        assert await news_client.list_news() == [ARTICLE]
        assert len(news_client.cache) == 1

    @pytest.mark.asyncio
    async def test_requests_bypass_http_caches(self, news_client, api):
        await news_client.list_news()
        headers = api.requests[0].headers
        assert headers["Cache-Control"] == "no-cache, no-store"
        assert headers["Accept"] == "application/json"
