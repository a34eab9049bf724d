"""
Billing enums - strongly typed enumerations for plans, credits and audit actions.
"""

from enum import Enum
from typing import Optional


class PlanId(str, Enum):
    """Closed set of plan identifiers."""

    FREE = "free"
    STANDARD = "standard"
    ENTERPRISE = "enterprise"

    def is_free(self) -> bool:
        return self == PlanId.FREE


class BillingInterval(str, Enum):
    """Billing cadence of a subscription."""

    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @classmethod
    def from_stripe(cls, interval: Optional[str]) -> "BillingInterval":
        """Map a Stripe recurring interval ("month"/"year") to our enum."""
        if interval and interval.lower().startswith("year"):
            return cls.YEARLY
        return cls.MONTHLY


class CreditOperation(str, Enum):
    """
    Credit-affecting operations.

    USE debits, RESET hard-resets to the plan's monthly allowance,
    BONUS adds capped at the plan ceiling.
    """

    USE = "USE"
    RESET = "RESET"
    BONUS = "BONUS"


class AuditAction(str, Enum):
    """Actions recorded in the subscription audit log."""

    DEFAULT_SUBSCRIPTION_CREATED = "default_subscription_created"
    INITIAL_CREDIT_ALLOCATION = "initial_credit_allocation"
    PLAN_CHANGE = "plan_change"
    MONTHLY_CREDIT_REFRESH = "monthly_credit_refresh"
    CREDIT_OPERATION = "credit_operation"
    CANCELLATION_REQUESTED = "cancellation_requested"
    SUBSCRIPTION_DELETED = "subscription_deleted"
