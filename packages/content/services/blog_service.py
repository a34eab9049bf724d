"""
Blog read path over the CMS provider.
"""

from typing import List, Optional

from common.core.otel_axiom_exporter import trace_span
from packages.content.exceptions import ArticleNotFoundError, CategoryNotFoundError
from packages.content.models.domain.article import Article, ArticlePage, Category
from packages.content.providers.cms.factory import get_cms_provider
from packages.content.providers.cms.interface import CMSProviderInterface


class BlogService:
    def __init__(self, cms_provider: Optional[CMSProviderInterface] = None):
        self.cms = cms_provider or get_cms_provider()

    @trace_span
    async def list_posts(self, page: int = 1, page_size: int = 10) -> ArticlePage:
        return await self.cms.get_articles(page=page, page_size=page_size)

    @trace_span
    async def get_post(self, slug: str) -> Article:
        article = await self.cms.get_article(slug)
        if article is None:
            raise ArticleNotFoundError()
        return article

    @trace_span
    async def list_categories(self) -> List[Category]:
        return await self.cms.get_categories()

    @trace_span
    async def list_category_posts(
        self, category_slug: str, page: int = 1, page_size: int = 10
    ) -> ArticlePage:
        category = await self.cms.get_category(category_slug)
        if category is None:
            raise CategoryNotFoundError()
        return await self.cms.get_articles(
            page=page, page_size=page_size, category_slug=category_slug
        )
