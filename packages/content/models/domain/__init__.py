from packages.content.models.domain.article import (
    Article,
    ArticleAuthor,
    ArticleCover,
    ArticlePage,
    Category,
    Pagination,
)

__all__ = [
    "Article",
    "ArticleAuthor",
    "ArticleCover",
    "ArticlePage",
    "Category",
    "Pagination",
]
