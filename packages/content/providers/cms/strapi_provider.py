"""Strapi v5 CMS provider implementation."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.content.exceptions import CMSError
from packages.content.models.domain.article import (
    Article,
    ArticlePage,
    Category,
    Pagination,
)
from packages.content.providers.cms.interface import CMSProviderInterface

logger = get_logger(__name__)


def flatten_params(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Encode nested query parameters the way Strapi parses them.

    {"filters": {"slug": {"$eq": "a"}}} becomes [("filters[slug][$eq]", "a")],
    lists are indexed and None values dropped.
    """
    flat: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            flat.extend(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            flat.extend(flatten_params(dict(enumerate(value)), name))
        elif isinstance(value, bool):
            flat.append((name, "true" if value else "false"))
        else:
            flat.append((name, str(value)))
    return flat


class StrapiCMSProvider(CMSProviderInterface):
    """
    Read-only Strapi client.

    Requests that fail with a 5xx, a network error or a timeout are retried
    with exponential backoff and full jitter; 4xx responses are raised at
    once.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = settings.strapi_url.rstrip("/")
        self.api_token = settings.strapi_api_token
        self.timeout = httpx.Timeout(settings.strapi_timeout_seconds)
        self.max_attempts = settings.strapi_max_retries
        self.initial_delay = settings.strapi_initial_retry_delay
        self.max_delay = settings.strapi_max_retry_delay
        self.transport = transport
        self._sleep = sleep

    @trace_span
    async def get_articles(
        self,
        page: int = 1,
        page_size: int = 10,
        category_slug: Optional[str] = None,
    ) -> ArticlePage:
        filters = {}
        if category_slug:
            filters["category"] = {"slug": {"$eq": category_slug}}

        body = await self._fetch(
            "articles",
            {
                "filters": filters,
                "populate": "*",
                "sort": ["publishedAt:desc"],
                "status": "published",
                "pagination": {"page": page, "pageSize": page_size, "withCount": True},
            },
        )
        pagination = body.get("meta", {}).get("pagination") or {
            "page": page,
            "pageSize": page_size,
        }
        return ArticlePage(
            articles=[Article.model_validate(item) for item in body.get("data", [])],
            pagination=Pagination.model_validate(pagination),
        )

    @trace_span
    async def get_article(self, slug: str) -> Optional[Article]:
        item = await self._fetch_single("articles", slug)
        return Article.model_validate(item) if item else None

    @trace_span
    async def get_categories(self) -> List[Category]:
        body = await self._fetch(
            "categories",
            {
                "fields": ["name", "slug", "description"],
                "sort": ["name:asc"],
                "status": "published",
                "pagination": {"page": 1, "pageSize": 100},
            },
        )
        return [Category.model_validate(item) for item in body.get("data", [])]

    @trace_span
    async def get_category(self, slug: str) -> Optional[Category]:
        item = await self._fetch_single("categories", slug)
        return Category.model_validate(item) if item else None

    async def _fetch_single(self, endpoint: str, slug: str) -> Optional[Dict[str, Any]]:
        body = await self._fetch(
            endpoint,
            {"filters": {"slug": {"$eq": slug}}, "populate": "*"},
        )
        data = body.get("data")
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def _fetch(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url or not self.api_token:
            raise CMSError(
                "Strapi is not configured, set STRAPI_URL and STRAPI_API_TOKEN"
            )

        url = f"{self.base_url}/api/{endpoint}"
        query = flatten_params(params)
        delay = self.initial_delay

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.get(
                        url,
                        params=query,
                        headers={"Authorization": f"Bearer {self.api_token}"},
                    )
                    response.raise_for_status()
                    return response.json()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code < 500:
                    logger.warning(
                        f"Strapi rejected request: {status_code}",
                        extra={"endpoint": endpoint, "status_code": status_code},
                    )
                    raise CMSError("Failed to fetch from Strapi", status_code) from e
                error: Exception = e
                error_status: Optional[int] = status_code

            except httpx.TransportError as e:
                error = e
                error_status = None

            if attempt == self.max_attempts:
                logger.error(
                    f"Strapi request failed after {attempt} attempts: {error}",
                    extra={"endpoint": endpoint, "status_code": error_status},
                )
                raise CMSError(
                    "Failed to fetch from Strapi after multiple attempts", error_status
                ) from error

            wait = random.uniform(0, delay)
            logger.warning(
                f"Strapi request failed (attempt {attempt}/{self.max_attempts}): {error}",
                extra={"endpoint": endpoint, "retry_in": wait},
            )
            await self._sleep(wait)
            delay = min(delay * 2, self.max_delay)

        raise CMSError("Failed to fetch from Strapi after maximum retries")
