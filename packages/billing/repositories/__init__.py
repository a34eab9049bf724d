"""Billing repositories."""

from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.credit_ledger_repository import (
    CreditLedgerRepository,
)
from packages.billing.repositories.audit_log_repository import AuditLogRepository
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
)

__all__ = [
    "SubscriptionRepository",
    "CreditLedgerRepository",
    "AuditLogRepository",
    "WebhookEventRepository",
]
