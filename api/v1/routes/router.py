from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.billing.routes import credits, subscription, webhooks, plans
from packages.content.routes import blog

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - signature verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Plans (no auth - public pricing info)
api_router.include_router(plans.router, prefix="/plans", tags=["billing"])

# Blog (no auth - public CMS content)
api_router.include_router(blog.router, prefix="/blog", tags=["blog"])

# Credits and subscription (auth required per route)
api_router.include_router(credits.router, prefix="/credits", tags=["credits"])
api_router.include_router(
    subscription.router, prefix="/subscription", tags=["subscription"]
)
