from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .image import ImageRef, ThumbnailRef


class PostCategory(str, Enum):
    TECHNOLOGY = "Technology"
    HEALTH = "Health"
    FINANCE = "Finance"
    LIFESTYLE = "Lifestyle"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    FOOD = "Food"
    NEWS = "News"
    ENTERTAINMENT = "Entertainment"
    SPORTS = "Sports"
    BUSINESS = "Business"
    SCIENCE = "Science"
    OTHER = "Other"


class Post(BaseModel):
    """A blog post document as stored under ``/posts/{id}``."""

    id: str
    title: str = Field(..., min_length=1, max_length=100)
    slug: str
    content: str = Field(..., min_length=1)
    summary: str = Field("", max_length=200)
    category: PostCategory = PostCategory.OTHER
    tags: list[str] = []
    author_id: str
    featured: bool = False
    published: bool = False
    publish_date: datetime
    views: int = Field(0, ge=0)
    images: list[ImageRef] = []
    thumbnail: ThumbnailRef | None = None
    created_at: datetime
    updated_at: datetime


class Comment(BaseModel):
    id: str
    post_id: str
    content: str = Field(..., min_length=1)
    author_id: str
    created_at: datetime
