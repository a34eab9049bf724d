"""Tests for the public blog endpoints."""

from unittest.mock import AsyncMock

import pytest

from api.main import app
from packages.content.exceptions import CMSError
from packages.content.models.domain.article import (
    Article,
    ArticlePage,
    Category,
    Pagination,
)
from packages.content.routes.blog import get_blog_service
from packages.content.services.blog_service import BlogService


@pytest.fixture
def cms():
    provider = AsyncMock()
    provider.get_articles = AsyncMock(
        return_value=ArticlePage(
            articles=[Article(id=1, slug="hello", title="Hello")],
            pagination=Pagination(page=1, page_size=10, page_count=1, total=1),
        )
    )
    provider.get_article = AsyncMock(return_value=None)
    provider.get_categories = AsyncMock(
        return_value=[Category(id=1, name="News", slug="news")]
    )
    provider.get_category = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def blog_client(anonymous_client, cms):
    app.dependency_overrides[get_blog_service] = lambda: BlogService(cms_provider=cms)
    return anonymous_client


async def test_list_posts(blog_client):
    response = await blog_client.get("/api/blog/posts")

    assert response.status_code == 200
    body = response.json()
    assert body["articles"][0]["slug"] == "hello"
    assert body["pagination"]["total"] == 1


async def test_unknown_post_is_404(blog_client):
    response = await blog_client.get("/api/blog/posts/missing")

    assert response.status_code == 404
    assert response.json() == {"error": "Article not found"}


async def test_list_categories(blog_client):
    response = await blog_client.get("/api/blog/categories")

    assert response.json() == [
        {"id": 1, "name": "News", "slug": "news", "description": None}
    ]


async def test_unknown_category_is_404(blog_client):
    response = await blog_client.get("/api/blog/categories/missing/posts")

    assert response.status_code == 404
    assert response.json() == {"error": "Category not found"}


async def test_cms_failure_is_500_without_details(blog_client, cms):
    cms.get_articles.side_effect = CMSError("Strapi returned 502", 502)

    response = await blog_client.get("/api/blog/posts")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
