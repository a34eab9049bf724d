"""Billing services."""

from packages.billing.services.access_guard import AccessGuard
from packages.billing.services.credit_service import CreditService
from packages.billing.services.subscription_service import SubscriptionService

__all__ = [
    "AccessGuard",
    "CreditService",
    "SubscriptionService",
]
