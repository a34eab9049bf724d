"""
Database entity for processed payment-provider webhook events.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class ProcessedWebhookEventEntity(Base):
    """Stripe event ids that have already been applied."""

    __tablename__ = "processed_webhook_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
