"""
API schemas for billing operations.

Request and response models for credit and subscription endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packages.billing.models.domain.enums import (
    BillingInterval,
    CreditOperation,
)


# ============================================================================
# Credit Schemas
# ============================================================================


class CreditBalanceResponse(BaseModel):
    """Current credit balance."""

    credits_remaining: int
    credits_limit: int
    plan_id: str


class UseCreditsRequest(BaseModel):
    """Request to spend credits on a named feature."""

    amount: int = Field(..., description="Credits to spend, must be positive")
    operation: str = Field(
        default="AI_OPERATION", max_length=100, description="Feature being paid for"
    )
    description: Optional[str] = Field(default=None, max_length=500)


class InsufficientCreditsResponse(BaseModel):
    """403 body returned when a paid plan or more credits are needed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    error: str
    requires_upgrade: bool
    redirect_to: Optional[str] = None


class CreditLedgerEntryResponse(BaseModel):
    operation: CreditOperation
    amount: int
    balance_after: int
    description: Optional[str] = None
    created_at: datetime


class CreditHistoryResponse(BaseModel):
    entries: List[CreditLedgerEntryResponse]


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionResponse(BaseModel):
    """The caller's subscription row."""

    id: int
    user_key: str
    plan_id: str
    billing_interval: BillingInterval
    amount: Decimal
    currency: str
    start_date: datetime
    end_date: datetime
    cancelled: bool
    cancelled_at: Optional[datetime] = None
    credits_remaining: int
    credits_limit: int
    credits_reset_count: int
    subscription_id: Optional[str] = Field(
        default=None, description="Stripe subscription id"
    )


class CancelSubscriptionResponse(BaseModel):
    """Response after subscription cancellation."""

    message: str
    end_date: datetime = Field(
        ..., description="Date until which the paid plan remains usable"
    )


# ============================================================================
# Checkout Schemas
# ============================================================================


class CheckoutSessionRequest(BaseModel):
    """Request to create a checkout session.

    Fields are optional at the schema level so that a missing field is
    reported as "Missing required fields" rather than a generic error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    price_id: Optional[str] = None
    plan_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    """Response with checkout URL."""

    url: str = Field(..., description="Stripe checkout session URL")
