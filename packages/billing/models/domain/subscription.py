"""
Domain models for subscriptions.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import BillingInterval, PlanId


class Subscription(BaseModel):
    """
    User subscription domain model.

    Represents a user's current plan including:
    - Plan and price snapshot (display only, Stripe is authoritative)
    - Billing period and cancellation state
    - Credit balance and ceiling
    - External IDs for Stripe
    """

    id: int
    user_key: str
    email: Optional[str] = None

    plan_id: str
    billing_interval: BillingInterval
    amount: Decimal
    currency: str

    external_subscription_ref: Optional[str] = None
    external_customer_ref: Optional[str] = None
    last_invoice_ref: Optional[str] = None

    start_date: datetime
    end_date: datetime

    cancelled: bool = False
    cancelled_at: Optional[datetime] = None

    credits_remaining: int
    credits_limit: int
    credits_reset_count: int

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_free(self) -> bool:
        return self.plan_id == PlanId.FREE.value

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Cancelled and past the end of its last paid period."""
        if not self.cancelled:
            return False
        now = now or datetime.now(timezone.utc)
        end_date = self.end_date
        if end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=timezone.utc)
        return end_date <= now


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    user_key: str
    email: Optional[str] = None
    plan_id: str
    billing_interval: str = BillingInterval.MONTHLY.value
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    start_date: datetime
    end_date: datetime
    external_subscription_ref: Optional[str] = None
    external_customer_ref: Optional[str] = None
    credits_remaining: int = 0
    credits_limit: int = 0
    credits_reset_count: int = 0

    @field_validator("plan_id", "billing_interval", mode="before")
    @classmethod
    def validate_enum(cls, v):
        if isinstance(v, (PlanId, BillingInterval)):
            return v.value
        return v


class SubscriptionUpdateModel(BaseModel):
    """
    Model for updating non-credit subscription fields.

    Credit fields are deliberately absent: only the credit service writes
    them, through its own atomic statements.
    """

    email: Optional[str] = None
    billing_interval: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    external_subscription_ref: Optional[str] = None
    external_customer_ref: Optional[str] = None

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    cancelled: Optional[bool] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("billing_interval", mode="before")
    @classmethod
    def validate_interval(cls, v):
        if isinstance(v, BillingInterval):
            return v.value
        return v
