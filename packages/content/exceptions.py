"""Content-specific refinements of the application error taxonomy."""

from typing import Optional

from common.core.exceptions import NotFoundError, UpstreamError


class CMSError(UpstreamError):
    """The CMS could not be reached or rejected the request."""

    default_detail = "Failed to fetch from CMS"

    def __init__(
        self, detail: Optional[str] = None, upstream_status: Optional[int] = None
    ):
        super().__init__(detail)
        self.upstream_status = upstream_status


class ArticleNotFoundError(NotFoundError):
    default_detail = "Article not found"


class CategoryNotFoundError(NotFoundError):
    default_detail = "Category not found"
