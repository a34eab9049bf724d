"""
Database entity for the subscription audit log.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionAuditLogEntity(Base):
    """
    Diagnostic trail of plan changes, allocations and cancellations.

    Written best-effort; the ledger is the authoritative credit history.
    """

    __tablename__ = "subscription_audit_log"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(String(50), nullable=False, index=True)
    details = Column(JSON, nullable=False, default=dict)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
