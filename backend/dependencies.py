"""
Shared FastAPI dependencies.
The cache and the storage client live on app.state so tests can swap them.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from cache import QueryCache
from storage import BucketStorage

limiter = Limiter(key_func=get_remote_address)


def get_news_cache(request: Request) -> QueryCache:
    return request.app.state.news_cache


def get_storage(request: Request) -> BucketStorage:
    return request.app.state.storage
