"""
Domain models for CMS content (Strapi v5 response shapes).

Unknown fields are ignored so content-type changes in the CMS don't break
parsing.
"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StrapiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(StrapiModel):
    page: int = 1
    page_size: int = 10
    page_count: int = 0
    total: int = 0


class ArticleAuthor(StrapiModel):
    id: int
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None


class ArticleCover(StrapiModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    alternative_text: Optional[str] = None


class Category(StrapiModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None


class Article(StrapiModel):
    id: int
    slug: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    blocks: List[Any] = Field(default_factory=list)
    author: Optional[ArticleAuthor] = None
    cover: Optional[ArticleCover] = None
    category: Optional[Category] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


class ArticlePage(StrapiModel):
    """A page of articles plus pagination info."""

    articles: List[Article]
    pagination: Pagination
