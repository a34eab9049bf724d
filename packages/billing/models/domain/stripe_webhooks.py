"""
Domain models for Stripe webhook payloads.

Strongly-typed Pydantic models for the parts of Stripe objects we read.
Unknown fields are ignored so API version bumps don't break parsing.
"""

from datetime import datetime, timezone
from typing import Optional, Any, List
from enum import Enum
from pydantic import BaseModel, Field


class StripeWebhookType(str, Enum):
    """Stripe webhook event types we handle."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAID = "invoice.paid"


class StripeMetadata(BaseModel):
    """Stripe metadata (we store the user key and plan here)."""

    user_key: Optional[str] = None
    plan_id: Optional[str] = None


class StripeRecurring(BaseModel):
    interval: str = "month"
    interval_count: int = 1


class StripePriceData(BaseModel):
    """Stripe price object."""

    id: str
    currency: str = "usd"
    unit_amount: Optional[int] = None
    recurring: Optional[StripeRecurring] = None


class StripeSubscriptionItemData(BaseModel):
    id: Optional[str] = None
    price: StripePriceData
    # Newer API versions moved the period onto the item
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class StripeSubscriptionItems(BaseModel):
    data: List[StripeSubscriptionItemData] = Field(default_factory=list)


class StripeSubscriptionData(BaseModel):
    """Stripe subscription object."""

    id: str
    customer: Optional[str] = None
    status: Optional[str] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = None
    ended_at: Optional[int] = None
    items: StripeSubscriptionItems = Field(default_factory=StripeSubscriptionItems)
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    @property
    def first_item(self) -> Optional[StripeSubscriptionItemData]:
        return self.items.data[0] if self.items.data else None

    @property
    def price(self) -> Optional[StripePriceData]:
        item = self.first_item
        return item.price if item else None

    @property
    def period_start(self) -> Optional[datetime]:
        value = self.current_period_start
        if value is None and self.first_item:
            value = self.first_item.current_period_start
        return from_timestamp(value)

    @property
    def period_end(self) -> Optional[datetime]:
        value = self.current_period_end
        if value is None and self.first_item:
            value = self.first_item.current_period_end
        return from_timestamp(value)


class StripeSubscriptionDetails(BaseModel):
    subscription: Optional[str] = None


class StripeInvoiceParent(BaseModel):
    subscription_details: Optional[StripeSubscriptionDetails] = None


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    parent: Optional[StripeInvoiceParent] = None
    customer_email: Optional[str] = None
    billing_reason: Optional[str] = None
    amount_paid: int = 0
    currency: Optional[str] = None

    @property
    def subscription_ref(self) -> Optional[str]:
        """Subscription id from either the legacy or the parent field."""
        if self.subscription:
            return self.subscription
        if self.parent and self.parent.subscription_details:
            return self.parent.subscription_details.subscription
        return None


class StripeCustomerDetails(BaseModel):
    email: Optional[str] = None


class StripeCheckoutSessionData(BaseModel):
    """Stripe checkout session object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    client_reference_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_details: Optional[StripeCustomerDetails] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    @property
    def email(self) -> Optional[str]:
        if self.customer_email:
            return self.customer_email
        if self.customer_details:
            return self.customer_details.email
        return None


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]  # The actual object (session, subscription, invoice)


class StripeWebhookPayload(BaseModel):
    """Complete Stripe webhook payload."""

    id: str
    type: str
    data: StripeEventData
    created: int
    livemode: bool = False


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to an aware datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class ProcessedWebhookEvent(BaseModel):
    """A Stripe event id that has already been applied."""

    id: int
    event_id: str
    event_type: str
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProcessedWebhookEventCreateModel(BaseModel):
    event_id: str
    event_type: str
