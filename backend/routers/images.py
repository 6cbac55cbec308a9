"""
Images Router
Image gallery, upload to the storage bucket, and removal.
"""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin
from cache import QueryCache
from database import get_db
from dependencies import get_news_cache, get_storage
from exceptions import StorageError, ValidationError
from models import ImageOut, serialize
from services.news_service import image_service, news_service
from storage import BucketStorage

router = APIRouter(prefix="/api/images", tags=["images"])
logger = logging.getLogger(__name__)


def object_name(filename: str, now: Optional[float] = None) -> str:
    """Bucket key for an upload: ``<epoch-ms>-<original name>``."""
    timestamp = int((now if now is not None else time.time()) * 1000)
    return f"{timestamp}-{filename}"


@router.get("")
async def list_images(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    """All images, newest first."""
    images = await image_service.list_images(db)
    return [serialize(ImageOut, image) for image in images]


@router.post("")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    news_id: Optional[str] = Form(None, alias="newsId"),
    db: AsyncSession = Depends(get_db),
    storage: BucketStorage = Depends(get_storage),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, Any]:
    """
    Upload an image and record it.

    Form fields: ``file`` (required) and ``newsId`` (optional article to
    attach the image to).
    """
    if file is None or not file.filename:
        raise ValidationError("No file provided", field_errors={"file": "required"})

    if news_id:
        # Fail before anything lands in the bucket
        await news_service.get_news(db, news_id)

    path = object_name(file.filename)
    content = await file.read()
    logger.info(f"{admin} uploading {path} ({len(content)} bytes)")

    await storage.upload(path, content, file.content_type or "application/octet-stream")
    public_url = storage.public_url(path)

    image = await image_service.create_image(db, url=public_url, path=path, news_id=news_id)
    cache.clear()
    return serialize(ImageOut, image)


@router.delete("/{image_id}")
async def delete_image(
    image_id: str,
    db: AsyncSession = Depends(get_db),
    storage: BucketStorage = Depends(get_storage),
    cache: QueryCache = Depends(get_news_cache),
    admin: str = Depends(require_admin),
) -> dict[str, bool]:
    """
    Delete an image.

    The record is removed even if the bucket refuses to delete the file.
    """
    image = await image_service.get_image(db, image_id)

    if image.path:
        try:
            await storage.remove([image.path])
        except StorageError as e:
            logger.error(f"Could not remove {image.path} from storage: {e.message}")

    await image_service.delete_image(db, image)
    cache.clear()
    logger.info(f"{admin} deleted image {image_id}")
    return {"success": True}
