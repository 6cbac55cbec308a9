"""
Pytest configuration and fixtures.
"""

import asyncio
import os
import tempfile

import pytest

# Set test environment variables before any imports
_db_dir = tempfile.mkdtemp(prefix="horizon-news-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["ADMIN_EMAILS"] = "editor@example.com,Chief@Example.com"
os.environ["STORAGE_URL"] = "http://storage.test"
os.environ["STORAGE_SERVICE_KEY"] = "test-service-key"
os.environ["RATE_LIMIT_PUBLIC"] = "10000/minute"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

STORAGE_URL = os.environ["STORAGE_URL"]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_retry():
    """Retry settings with negligible backoff."""
    from resilience import RetryConfig
    return RetryConfig(max_attempts=3, base_delay=0.01, max_delay=0.05, exponential_base=2.0, timeout=1.0)


@pytest.fixture
def admin_headers():
    from auth import create_access_token
    token = create_access_token({"sub": "editor@example.com"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def outsider_headers():
    from auth import create_access_token
    token = create_access_token({"sub": "reader@example.com"})
    return {"Authorization": f"Bearer {token}"}


class StorageRecorder:
    """Stands in for the bucket's REST API behind httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.fail_removal = False

    def __call__(self, request):
        import httpx

        self.requests.append(request)
        if request.method == "POST":
            key = request.url.path.split("/storage/v1/object/", 1)[1]
            return httpx.Response(200, json={"Key": key})
        if request.method == "DELETE":
            if self.fail_removal:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=[{"name": "removed"}])
        return httpx.Response(404)


@pytest.fixture
def storage_recorder():
    return StorageRecorder()


@pytest.fixture
def client(storage_recorder):
    """TestClient over a fresh database, cache and mocked bucket."""
    import httpx
    from fastapi.testclient import TestClient

    from cache import QueryCache
    from database import drop_db
    from main import app
    from resilience import RetryConfig
    from storage import BucketStorage

    asyncio.run(drop_db())

    app.state.news_cache = QueryCache(ttl=60)
    app.state.storage = BucketStorage(
        base_url=STORAGE_URL,
        service_key="test-service-key",
        bucket="images",
        client=httpx.AsyncClient(transport=httpx.MockTransport(storage_recorder)),
        retry_config=RetryConfig(max_attempts=1, base_delay=0.01, max_delay=0.01, exponential_base=2.0, timeout=1.0),
    )

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_news():
    """Body for creating an article."""
    return {
        "homeTitle": "AI 與新聞",
        "title": "AI 是否會取代新聞記者？",
        "subtitle": "機器學習時代的新聞倫理與挑戰",
        "contentMD": "## 新聞編輯自動化的可能性",
        "contentHTML": "<h2>新聞編輯自動化的可能性</h2>",
        "coverImage": "http://storage.test/cover.jpg",
        "tagNames": ["AI", "新聞"],
        "images": [{"url": "http://storage.test/a.png", "path": "a.png"}],
        "references": [{"url": "https://example.com/source", "title": "Source"}],
    }
