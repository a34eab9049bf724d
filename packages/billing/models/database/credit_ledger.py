"""
Database entity for the credit ledger.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Index, Text
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class CreditLedgerEntity(Base):
    """
    Append-only record of every committed credit operation.

    Rows are inserted by the credit service in the same transaction as the
    balance change and never updated or deleted.
    """

    __tablename__ = "credit_ledger"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    operation = Column(String(20), nullable=False)  # USE, RESET, BONUS
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_credit_ledger_subscription_created", "subscription_id", "created_at"),
    )
