"""
Tags Router
Tag listing and admin tag management.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin
from cache import QueryCache
from database import get_db
from dependencies import get_news_cache
from models import TagCreate, TagOut, TagUpdate, serialize
from services.news_service import tag_service

router = APIRouter(prefix="/api/tags", tags=["tags"])
logger = logging.getLogger(__name__)


@router.get("")
async def list_tags(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    """All tags sorted by name."""
    tags = await tag_service.list_tags(db)
    return [serialize(TagOut, tag) for tag in tags]


@router.post("", status_code=201)
async def create_tag(
    data: TagCreate,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
):
    """
    Create a tag.

    An existing name is not an error: the existing tag is returned with
    status 200 and an ``error`` note.
    """
    tag, created = await tag_service.create_tag(db, data.name)
    if not created:
        return JSONResponse(
            status_code=200,
            content={**serialize(TagOut, tag), "error": "Tag already exists"},
        )
    cache.clear()
    logger.info(f"{admin} created tag {tag.name!r}")
    return serialize(TagOut, tag)


@router.get("/{tag_id}")
async def get_tag(tag_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    tag = await tag_service.get_tag(db, tag_id)
    return serialize(TagOut, tag)


@router.put("/{tag_id}")
async def update_tag(
    tag_id: str,
    data: TagUpdate,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, Any]:
    tag = await tag_service.update_tag(db, tag_id, data.name)
    # Cached article lists embed tag names
    cache.clear()
    return serialize(TagOut, tag)


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: str,
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, bool]:
    await tag_service.delete_tag(db, tag_id)
    cache.clear()
    logger.info(f"{admin} deleted tag {tag_id}")
    return {"success": True}
