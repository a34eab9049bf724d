"""Database models for billing."""

from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.credit_ledger import CreditLedgerEntity
from packages.billing.models.database.audit_log import SubscriptionAuditLogEntity
from packages.billing.models.database.webhook_event import ProcessedWebhookEventEntity

__all__ = [
    "SubscriptionEntity",
    "CreditLedgerEntity",
    "SubscriptionAuditLogEntity",
    "ProcessedWebhookEventEntity",
]
