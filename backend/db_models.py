"""
Database models for Horizon News.
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, DateTime, Text, ForeignKey, Boolean, Table, Index
)
from sqlalchemy.orm import relationship

from database import Base


def new_id() -> str:
    return uuid.uuid4().hex


news_tags = Table(
    "news_tags",
    Base.metadata,
    Column("news_id", String(32), ForeignKey("news.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(32), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class News(Base):
    """
    A published article.
    Markdown is the editing source; HTML is the rendered form served to readers.
    """
    __tablename__ = "news"

    id = Column(String(32), primary_key=True, default=new_id)
    home_title = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    content_md = Column(Text, nullable=False, default="")
    content_html = Column(Text, nullable=False, default="")
    cover_image = Column(String(1024), nullable=True)
    show_on_home = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tags = relationship("Tag", secondary=news_tags, back_populates="news")
    images = relationship(
        "Image", back_populates="news", cascade="all, delete-orphan"
    )
    references = relationship(
        "Reference", back_populates="news", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_news_home", "show_on_home", "created_at"),
    )


class Tag(Base):
    """A topic label; names are unique."""
    __tablename__ = "tags"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), unique=True, nullable=False, index=True)

    news = relationship("News", secondary=news_tags, back_populates="tags")


class Image(Base):
    """
    An uploaded image.
    `path` is the object key inside the bucket, `url` its public address.
    """
    __tablename__ = "images"

    id = Column(String(32), primary_key=True, default=new_id)
    url = Column(String(1024), nullable=False)
    path = Column(String(1024), nullable=False)
    news_id = Column(String(32), ForeignKey("news.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    news = relationship("News", back_populates="images")


class Reference(Base):
    """An external source cited by an article."""
    __tablename__ = "references"

    id = Column(String(32), primary_key=True, default=new_id)
    url = Column(String(1024), nullable=False)
    title = Column(String(255), nullable=False, default="")
    news_id = Column(String(32), ForeignKey("news.id", ondelete="CASCADE"), nullable=False, index=True)

    news = relationship("News", back_populates="references")
