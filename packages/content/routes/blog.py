"""
Blog API routes.

Public read-only endpoints backed by the CMS.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from packages.content.models.domain.article import Article, ArticlePage, Category
from packages.content.services.blog_service import BlogService

router = APIRouter()


def get_blog_service() -> BlogService:
    return BlogService()


@router.get("/posts", response_model=ArticlePage, response_model_by_alias=False)
async def list_posts(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    blog_service: BlogService = Depends(get_blog_service),
):
    """Published posts, newest first."""
    return await blog_service.list_posts(page=page, page_size=page_size)


@router.get("/posts/{slug}", response_model=Article, response_model_by_alias=False)
async def get_post(slug: str, blog_service: BlogService = Depends(get_blog_service)):
    return await blog_service.get_post(slug)


@router.get(
    "/categories", response_model=List[Category], response_model_by_alias=False
)
async def list_categories(blog_service: BlogService = Depends(get_blog_service)):
    return await blog_service.list_categories()


@router.get(
    "/categories/{slug}/posts",
    response_model=ArticlePage,
    response_model_by_alias=False,
)
async def list_category_posts(
    slug: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    blog_service: BlogService = Depends(get_blog_service),
):
    """Posts of one category; 404 when the category doesn't exist."""
    return await blog_service.list_category_posts(slug, page=page, page_size=page_size)
