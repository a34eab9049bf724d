"""
Interface for CMS providers.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from packages.content.models.domain.article import Article, ArticlePage, Category


class CMSProviderInterface(ABC):
    """Abstract interface for read-only CMS access."""

    @abstractmethod
    async def get_articles(
        self,
        page: int = 1,
        page_size: int = 10,
        category_slug: Optional[str] = None,
    ) -> ArticlePage:
        """Published articles, newest first."""
        pass

    @abstractmethod
    async def get_article(self, slug: str) -> Optional[Article]:
        """A single article by slug, or None when it doesn't exist."""
        pass

    @abstractmethod
    async def get_categories(self) -> List[Category]:
        """All categories ordered by name."""
        pass

    @abstractmethod
    async def get_category(self, slug: str) -> Optional[Category]:
        pass
