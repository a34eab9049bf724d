"""FastAPI dependency providers for billing services."""

from packages.billing.services.access_guard import AccessGuard
from packages.billing.services.credit_service import CreditService
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.webhooks.stripe_webhook import (
    StripeWebhookProcessor,
    get_stripe_webhook_processor,
)


def get_credit_service() -> CreditService:
    return CreditService()


def get_access_guard() -> AccessGuard:
    return AccessGuard()


def get_subscription_service() -> SubscriptionService:
    return SubscriptionService()


def get_webhook_processor() -> StripeWebhookProcessor:
    return get_stripe_webhook_processor()
