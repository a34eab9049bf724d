"""
Subscription API routes.

Protected endpoints for the caller's subscription and checkout.
"""

from fastapi import APIRouter, Depends, Request

from common.providers.rate_limiter.limiter import limiter
from packages.auth.dependencies import get_current_user
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.dependencies import get_subscription_service
from packages.billing.models.schemas.billing import (
    CancelSubscriptionResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SubscriptionResponse,
)
from packages.billing.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/current", response_model=SubscriptionResponse)
async def get_current_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Get the caller's subscription.

    Creates a free subscription on first access.
    """
    subscription = await subscription_service.get_or_create_current(current_user)
    return SubscriptionResponse(
        **subscription.model_dump(),
        subscription_id=subscription.external_subscription_ref,
    )


@router.post("/cancel", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Cancel the caller's paid subscription.

    The plan stays usable until end_date.
    """
    subscription = await subscription_service.cancel_subscription(
        current_user.user_key
    )
    return CancelSubscriptionResponse(
        message="Subscription cancelled successfully",
        end_date=subscription.end_date,
    )


@router.post("/create-checkout", response_model=CheckoutSessionResponse)
@limiter.limit("10/minute")
async def create_checkout_session(
    request: Request,
    body: CheckoutSessionRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a Stripe checkout session for a paid plan."""
    url = await subscription_service.create_checkout(current_user, body)
    return CheckoutSessionResponse(url=url)
