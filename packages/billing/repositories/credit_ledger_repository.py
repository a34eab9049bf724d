"""
Repository for the append-only credit ledger.
"""

from typing import List
from sqlalchemy import func, select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.credit_ledger import CreditLedgerEntity
from packages.billing.models.domain.credits import (
    CreditLedgerEntry,
    CreditLedgerEntryCreateModel,
)


class CreditLedgerRepository(BaseRepository[CreditLedgerEntity, CreditLedgerEntry]):
    """Insert and read ledger entries. There is no update or delete."""

    def __init__(self):
        super().__init__(CreditLedgerEntity, CreditLedgerEntry)

    @trace_span
    async def record(self, entry: CreditLedgerEntryCreateModel) -> CreditLedgerEntry:
        return await self.create(entry)

    @trace_span
    async def list_for_subscription(
        self, subscription_id: int, limit: int = 50
    ) -> List[CreditLedgerEntry]:
        """Most recent entries first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(CreditLedgerEntity)
                .where(CreditLedgerEntity.subscription_id == subscription_id)
                .order_by(CreditLedgerEntity.id.desc())
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def count_for_subscription(self, subscription_id: int) -> int:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(CreditLedgerEntity.id)).where(
                    CreditLedgerEntity.subscription_id == subscription_id
                )
            )
            return result.scalar_one()
