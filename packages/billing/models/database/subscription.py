"""
Database entity for subscriptions.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Index,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    User subscription database entity.

    One row per user (unique user_key). Holds the current plan, billing
    period, Stripe references and the credit balance. Rows are never
    hard-deleted; cancellation is a flag.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_key = Column(String(36), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=True)

    # Plan
    plan_id = Column(String(50), nullable=False, index=True)  # free, standard, enterprise
    billing_interval = Column(String(20), nullable=False, server_default="MONTHLY")
    amount = Column(Numeric(10, 2), nullable=False, server_default="0")
    currency = Column(String(3), nullable=False, server_default="USD")

    # External platform IDs
    external_subscription_ref = Column(
        String(255), nullable=True, unique=True, index=True
    )
    external_customer_ref = Column(String(255), nullable=True, index=True)
    last_invoice_ref = Column(String(255), nullable=True)

    # Billing period
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    # Cancellation (soft - access remains until end_date)
    cancelled = Column(Boolean, nullable=False, default=False, server_default="false")
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Credits
    credits_remaining = Column(Integer, nullable=False, default=0, server_default="0")
    credits_limit = Column(Integer, nullable=False, default=0, server_default="0")
    credits_reset_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Standard timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "credits_remaining >= 0 AND credits_remaining <= credits_limit",
            name="credits_within_limit",
        ),
        CheckConstraint("credits_reset_count >= 0", name="reset_count_non_negative"),
        Index("idx_subscription_end_date", "end_date"),
    )
