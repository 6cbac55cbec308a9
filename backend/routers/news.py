"""
News Router
Public reading endpoints and admin article management.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin
from cache import QueryCache, build_query_key
from config import settings
from database import get_db
from dependencies import get_news_cache, limiter
from exceptions import ValidationError
from models import NewsCreate, NewsOut, NewsUpdate, serialize
from services.news_service import news_service

router = APIRouter(prefix="/api/news", tags=["news"])
logger = logging.getLogger(__name__)

NEWS_LIST_PATH = "/api/news"


def parse_tag_filter(tags: Optional[str]) -> list[str]:
    """Turn ``"AI, 新聞,AI"`` into a sorted, de-duplicated list of names."""
    if not tags:
        return []
    return sorted({name.strip() for name in tags.split(",") if name.strip()})


@router.get("")
@limiter.limit(settings().rate_limit_public)
async def list_news(
    request: Request,
    tags: Optional[str] = None,
    show_on_home: Optional[bool] = Query(None, alias="showOnHome"),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
) -> list[dict[str, Any]]:
    """
    List articles, newest first.

    Args:
        tags: Comma-separated tag names; an article matches if it has any
        showOnHome: Restrict to (or exclude) home-feed articles

    Results are served from the query cache for its TTL; any news write
    clears it.
    """
    tag_names = parse_tag_filter(tags)
    key = build_query_key(NEWS_LIST_PATH, {
        "tags": ",".join(tag_names) or None,
        "showOnHome": show_on_home,
    })

    cached = cache.get(key)
    if cached is not None:
        return cached

    items = await news_service.list_news(db, tag_names or None, show_on_home)
    payload = [serialize(NewsOut, news) for news in items]
    cache.set(key, payload)
    return payload


@router.post("", status_code=201)
async def create_news(
    data: NewsCreate,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, Any]:
    news = await news_service.create_news(db, data)
    cache.clear()
    logger.info(f"{admin} created news {news.id}")
    return serialize(NewsOut, news)


@router.get("/{news_id}")
@limiter.limit(settings().rate_limit_public)
async def get_news(
    request: Request,
    news_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    news = await news_service.get_news(db, news_id)
    return serialize(NewsOut, news)


@router.put("/{news_id}")
async def update_news(
    news_id: str,
    data: NewsUpdate,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, Any]:
    news = await news_service.update_news(db, news_id, data)
    cache.clear()
    logger.info(f"{admin} updated news {news_id}")
    return serialize(NewsOut, news)


@router.delete("/{news_id}")
async def delete_news(
    news_id: str,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, str]:
    await news_service.delete_news(db, news_id)
    cache.clear()
    logger.info(f"{admin} deleted news {news_id}")
    return {"message": "News deleted"}


@router.patch("/{news_id}/showOnHome")
async def set_show_on_home(
    news_id: str,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, Any]:
    """
    Toggle whether an article appears on the home feed.

    Body: ``{"showOnHome": true}``; anything but a JSON boolean is rejected.
    """
    show_on_home = payload.get("showOnHome") if isinstance(payload, dict) else None
    if not isinstance(show_on_home, bool):
        raise ValidationError(
            "showOnHome must be a boolean",
            field_errors={"showOnHome": "must be a boolean"},
        )

    news = await news_service.set_show_on_home(db, news_id, show_on_home)
    cache.clear()
    logger.info(f"{admin} set showOnHome={show_on_home} on news {news_id}")
    return {"message": "Updated", "news": serialize(NewsOut, news)}
