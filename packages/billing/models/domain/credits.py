"""
Domain models for credit operations and the credit ledger.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import AuditAction, CreditOperation


class CreditOperationRequest(BaseModel):
    """A single credit-affecting operation against one subscription."""

    subscription_id: int
    amount: int
    operation: str  # USE, RESET or BONUS; validated by the credit service
    description: Optional[str] = None


class CreditBalance(BaseModel):
    """Balance returned after reading or changing credits."""

    credits_remaining: int
    credits_limit: int
    plan_id: str


class CreditCheckResult(BaseModel):
    """
    Outcome of a pre-flight credit check.

    Never raised as an error; callers inspect has_credits.
    """

    has_credits: bool
    subscription_id: Optional[int] = None
    credits_remaining: Optional[int] = None
    error: Optional[str] = None
    requires_upgrade: bool = False


class CreditLedgerEntry(BaseModel):
    """A committed credit operation."""

    id: int
    subscription_id: int
    operation: CreditOperation
    amount: int
    balance_after: int
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CreditLedgerEntryCreateModel(BaseModel):
    subscription_id: int
    operation: str
    amount: int
    balance_after: int
    description: Optional[str] = None

    @field_validator("operation", mode="before")
    @classmethod
    def validate_operation(cls, v):
        if isinstance(v, CreditOperation):
            return v.value
        return v


class AuditLogEntry(BaseModel):
    id: int
    subscription_id: int
    action: AuditAction
    details: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogEntryCreateModel(BaseModel):
    subscription_id: int
    action: str
    details: Dict[str, Any] = {}

    @field_validator("action", mode="before")
    @classmethod
    def validate_action(cls, v):
        if isinstance(v, AuditAction):
            return v.value
        return v


class CreditAdjustment(BaseModel):
    """Result of a webhook-driven credit change.

    applied is False when the change had already been made (redelivery).
    """

    subscription_id: int
    previous_remaining: int
    credits_remaining: int
    credits_limit: int
    plan_id: str
    applied: bool = True

    @property
    def credits_added(self) -> int:
        return self.credits_remaining - self.previous_remaining
