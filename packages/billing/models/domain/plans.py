"""Domain models for billing plans."""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, model_validator

from packages.billing.models.domain.enums import BillingInterval, PlanId


class CreditPolicy(BaseModel):
    """How many credits a plan grants and how unused credits carry over."""

    model_config = ConfigDict(frozen=True)

    monthly: int
    rollover: bool
    maximum: int

    @model_validator(mode="after")
    def check_bounds(self) -> "CreditPolicy":
        if self.monthly < 0 or self.maximum < self.monthly:
            raise ValueError("credit policy requires 0 <= monthly <= maximum")
        return self


class Plan(BaseModel):
    """Immutable plan configuration."""

    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str
    price: Decimal
    currency: str = "USD"
    billing_interval: BillingInterval = BillingInterval.MONTHLY
    stripe_price_id: Optional[str] = None
    credits: CreditPolicy

    @property
    def is_free(self) -> bool:
        return self.id.is_free()

    def renewal_balance(self, current_remaining: int) -> int:
        """Balance after a renewal or a change onto this plan."""
        if self.credits.rollover:
            return min(current_remaining + self.credits.monthly, self.credits.maximum)
        return self.credits.monthly


class PlanInfo(BaseModel):
    """Public view of a plan."""

    id: PlanId
    name: str
    price: Decimal
    currency: str
    billing_interval: BillingInterval
    stripe_price_id: Optional[str]
    monthly_credits: int
    rollover: bool
    maximum_credits: int


class PlansResponse(BaseModel):
    """Response model for plans endpoint."""

    plans: list[PlanInfo]
