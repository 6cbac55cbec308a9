"""
News Service
Article, tag and image persistence on top of the async SQLAlchemy session.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db_models import Image, News, Reference, Tag
from exceptions import (
    ImageNotFoundError,
    NewsNotFoundError,
    ResourceConflictError,
    TagNotFoundError,
)
from models import NewsCreate, NewsUpdate

logger = logging.getLogger(__name__)


def _with_children(stmt):
    return stmt.options(
        selectinload(News.tags),
        selectinload(News.images),
        selectinload(News.references),
    )


def _clean_tag_names(names: Iterable[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping order."""
    seen: dict[str, None] = {}
    for name in names:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


class NewsService:
    """Service for reading and writing news articles"""

    async def list_news(
        self,
        db: AsyncSession,
        tag_names: Optional[list[str]] = None,
        show_on_home: Optional[bool] = None,
    ) -> list[News]:
        """
        List articles, newest first.

        Args:
            db: Database session
            tag_names: Keep articles carrying at least one of these tags
            show_on_home: Filter on the home-feed flag when given

        Returns:
            Articles with tags, images and references loaded
        """
        stmt = select(News)
        if tag_names:
            stmt = stmt.where(News.tags.any(Tag.name.in_(tag_names)))
        if show_on_home is not None:
            stmt = stmt.where(News.show_on_home == show_on_home)
        stmt = _with_children(stmt).order_by(News.created_at.desc())

        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_news(self, db: AsyncSession, news_id: str) -> News:
        stmt = _with_children(select(News).where(News.id == news_id))
        stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        news = result.scalars().first()
        if news is None:
            raise NewsNotFoundError(f"News {news_id} not found")
        return news

    async def create_news(self, db: AsyncSession, data: NewsCreate) -> News:
        news = News(
            home_title=data.home_title,
            title=data.title,
            subtitle=data.subtitle,
            content_md=data.content_md,
            content_html=data.content_html,
            cover_image=data.cover_image,
            tags=await tag_service.resolve_tags(db, data.tag_names),
            images=[Image(url=img.url, path=img.path) for img in data.images],
            references=[Reference(url=ref.url, title=ref.title) for ref in data.references],
        )
        db.add(news)
        await db.commit()
        logger.info(f"Created news {news.id}")
        return await self.get_news(db, news.id)

    async def update_news(self, db: AsyncSession, news_id: str, data: NewsUpdate) -> News:
        """
        Replace an article's fields, tags and references.

        Images listed in ``image_ids_to_delete`` are removed only if they
        belong to this article; ``images_to_create`` are attached.
        """
        news = await self.get_news(db, news_id)

        news.home_title = data.home_title
        news.title = data.title
        news.subtitle = data.subtitle
        news.content_md = data.content_md
        news.content_html = data.content_html
        news.cover_image = data.cover_image
        news.tags = await tag_service.resolve_tags(db, data.tag_names)

        doomed = set(data.image_ids_to_delete)
        for image in [img for img in news.images if img.id in doomed]:
            news.images.remove(image)
        for img in data.images_to_create:
            news.images.append(Image(url=img.url, path=img.path))

        news.references = [Reference(url=ref.url, title=ref.title) for ref in data.references]

        await db.commit()
        logger.info(f"Updated news {news_id}")
        return await self.get_news(db, news_id)

    async def delete_news(self, db: AsyncSession, news_id: str) -> None:
        news = await self.get_news(db, news_id)
        await db.delete(news)
        await db.commit()
        logger.info(f"Deleted news {news_id}")

    async def set_show_on_home(self, db: AsyncSession, news_id: str, show_on_home: bool) -> News:
        news = await self.get_news(db, news_id)
        news.show_on_home = show_on_home
        await db.commit()
        logger.info(f"News {news_id} showOnHome set to {show_on_home}")
        return await self.get_news(db, news_id)


class TagService:
    """Service for managing tags"""

    async def list_tags(self, db: AsyncSession) -> list[Tag]:
        result = await db.execute(select(Tag).order_by(Tag.name.asc()))
        return list(result.scalars().all())

    async def get_tag(self, db: AsyncSession, tag_id: str) -> Tag:
        tag = await db.get(Tag, tag_id)
        if tag is None:
            raise TagNotFoundError(f"Tag {tag_id} not found")
        return tag

    async def find_by_name(self, db: AsyncSession, name: str) -> Optional[Tag]:
        result = await db.execute(select(Tag).where(Tag.name == name))
        return result.scalars().first()

    async def resolve_tags(self, db: AsyncSession, names: Iterable[str]) -> list[Tag]:
        """
        Connect-or-create tags by name.

        Args:
            db: Database session
            names: Tag names; blanks and duplicates are ignored

        Returns:
            Tag rows in the order the names were given
        """
        cleaned = _clean_tag_names(names)
        if not cleaned:
            return []

        result = await db.execute(select(Tag).where(Tag.name.in_(cleaned)))
        existing = {tag.name: tag for tag in result.scalars().all()}

        tags = []
        for name in cleaned:
            tag = existing.get(name)
            if tag is None:
                tag = Tag(name=name)
                db.add(tag)
            tags.append(tag)
        return tags

    async def create_tag(self, db: AsyncSession, name: str) -> tuple[Tag, bool]:
        """
        Create a tag unless one with the same name exists.

        Returns:
            (tag, created) where ``created`` is False for an existing tag
        """
        existing = await self.find_by_name(db, name)
        if existing is not None:
            return existing, False

        tag = Tag(name=name)
        db.add(tag)
        await db.commit()
        logger.info(f"Created tag {name!r}")
        return tag, True

    async def update_tag(self, db: AsyncSession, tag_id: str, name: str) -> Tag:
        tag = await self.get_tag(db, tag_id)
        clash = await self.find_by_name(db, name)
        if clash is not None and clash.id != tag.id:
            raise ResourceConflictError(f"Tag {name!r} already exists")

        tag.name = name
        await db.commit()
        return tag

    async def delete_tag(self, db: AsyncSession, tag_id: str) -> None:
        result = await db.execute(
            select(Tag).where(Tag.id == tag_id).options(selectinload(Tag.news))
        )
        tag = result.scalars().first()
        if tag is None:
            raise TagNotFoundError(f"Tag {tag_id} not found")
        await db.delete(tag)
        await db.commit()
        logger.info(f"Deleted tag {tag_id}")


class ImageService:
    """Service for image records (the files themselves live in the bucket)"""

    async def list_images(self, db: AsyncSession) -> list[Image]:
        result = await db.execute(select(Image).order_by(Image.created_at.desc()))
        return list(result.scalars().all())

    async def get_image(self, db: AsyncSession, image_id: str) -> Image:
        image = await db.get(Image, image_id)
        if image is None:
            raise ImageNotFoundError(f"Image {image_id} not found")
        return image

    async def create_image(
        self,
        db: AsyncSession,
        url: str,
        path: str,
        news_id: Optional[str] = None,
    ) -> Image:
        if news_id and await db.get(News, news_id) is None:
            raise NewsNotFoundError(f"News {news_id} not found")

        image = Image(url=url, path=path, news_id=news_id or None)
        db.add(image)
        await db.commit()
        logger.info(f"Recorded image {image.id} at {path}")
        return image

    async def delete_image(self, db: AsyncSession, image: Image) -> None:
        await db.delete(image)
        await db.commit()


news_service = NewsService()
tag_service = TagService()
image_service = ImageService()
