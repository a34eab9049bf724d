"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    AuditAction,
    BillingInterval,
    CreditOperation,
    PlanId,
)
from packages.billing.models.domain.plans import CreditPolicy, Plan
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.credits import (
    CreditBalance,
    CreditCheckResult,
    CreditLedgerEntry,
    CreditOperationRequest,
)

__all__ = [
    # Enums
    "AuditAction",
    "BillingInterval",
    "CreditOperation",
    "PlanId",
    # Plans
    "CreditPolicy",
    "Plan",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
    # Credits
    "CreditBalance",
    "CreditCheckResult",
    "CreditLedgerEntry",
    "CreditOperationRequest",
]
