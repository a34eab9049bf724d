"""Billing-specific refinements of the application error taxonomy."""

from typing import Optional

from common.core.exceptions import ConflictError, NotFoundError, ValidationError


class SubscriptionNotFoundError(NotFoundError):
    default_detail = "Subscription not found"


class InvalidPlanError(ValidationError):
    default_detail = "Invalid plan"


class InvalidOperationError(ValidationError):
    default_detail = "Invalid operation type"


class InsufficientCreditsError(ConflictError):
    """Not enough credits for a USE operation.

    requires_upgrade tells clients to send the user to the pricing page.
    """

    default_detail = "Insufficient credits"

    def __init__(self, detail: Optional[str] = None, requires_upgrade: bool = False):
        super().__init__(detail)
        self.requires_upgrade = requires_upgrade
