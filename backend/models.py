"""
Pydantic models for the Horizon News API.
Provides data validation and serialization.

Wire names are camelCase; ORM attributes are snake_case. Each multi-word
field accepts both on input and is emitted in camelCase.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _camel(camel: str, snake: str, **kwargs: Any) -> Any:
    return Field(
        validation_alias=AliasChoices(camel, snake),
        serialization_alias=camel,
        **kwargs,
    )


class APIModel(BaseModel):
    """Base for request and response bodies."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# =============================================================================
# Tags
# =============================================================================

class TagBase(APIModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tag name cannot be blank")
        return v


class TagCreate(TagBase):
    """Body of POST /api/tags."""


class TagUpdate(TagBase):
    """Body of PUT /api/tags/{id}."""


class TagOut(APIModel):
    id: str
    name: str


# =============================================================================
# Images / References
# =============================================================================

class ImageIn(APIModel):
    """An already-uploaded image to attach to an article."""
    url: str
    path: str


class ImageOut(APIModel):
    id: str
    url: str
    path: str
    news_id: Optional[str] = _camel("newsId", "news_id", default=None)
    created_at: Optional[datetime] = _camel("createdAt", "created_at", default=None)


class ReferenceIn(APIModel):
    url: str
    title: str = ""


class ReferenceOut(APIModel):
    id: str
    url: str
    title: str = ""


# =============================================================================
# News
# =============================================================================

class NewsFields(APIModel):
    home_title: str = _camel("homeTitle", "home_title", min_length=1)
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    content_md: str = _camel("contentMD", "content_md", default="")
    content_html: str = _camel("contentHTML", "content_html", default="")
    cover_image: Optional[str] = _camel("coverImage", "cover_image", default=None)
    tag_names: list[str] = _camel("tagNames", "tag_names", default_factory=list)
    references: list[ReferenceIn] = Field(default_factory=list)


class NewsCreate(NewsFields):
    """Body of POST /api/news."""
    images: list[ImageIn] = Field(default_factory=list)


class NewsUpdate(NewsFields):
    """Body of PUT /api/news/{id}."""
    images_to_create: list[ImageIn] = _camel("imagesToCreate", "images_to_create", default_factory=list)
    image_ids_to_delete: list[str] = _camel("imageIdsToDelete", "image_ids_to_delete", default_factory=list)


class NewsOut(APIModel):
    id: str
    home_title: str = _camel("homeTitle", "home_title")
    title: str
    subtitle: Optional[str] = None
    content_md: str = _camel("contentMD", "content_md", default="")
    content_html: str = _camel("contentHTML", "content_html", default="")
    cover_image: Optional[str] = _camel("coverImage", "cover_image", default=None)
    show_on_home: bool = _camel("showOnHome", "show_on_home", default=False)
    created_at: Optional[datetime] = _camel("createdAt", "created_at", default=None)
    updated_at: Optional[datetime] = _camel("updatedAt", "updated_at", default=None)
    tags: list[TagOut] = Field(default_factory=list)
    images: list[ImageOut] = Field(default_factory=list)
    references: list[ReferenceOut] = Field(default_factory=list)


def serialize(model: type[APIModel], obj: Any) -> dict[str, Any]:
    """Render an ORM object as a JSON-ready camelCase dictionary."""
    return model.model_validate(obj).model_dump(by_alias=True, mode="json")
