"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from fastapi import APIRouter, Depends, Request

from packages.billing.dependencies import get_webhook_processor
from packages.billing.webhooks.stripe_webhook import (
    StripeWebhookProcessor,
    handle_stripe_webhook,
)

router = APIRouter()


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    processor: StripeWebhookProcessor = Depends(get_webhook_processor),
) -> dict[str, str]:
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - webhook signature validated internally.
    """
    return await handle_stripe_webhook(request, processor)
