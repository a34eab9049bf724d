"""
Repository for the subscription audit log.
"""

from typing import List
from sqlalchemy import select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import savepoint
from packages.billing.models.database.audit_log import SubscriptionAuditLogEntity
from packages.billing.models.domain.credits import (
    AuditLogEntry,
    AuditLogEntryCreateModel,
)

logger = get_logger(__name__)


class AuditLogRepository(BaseRepository[SubscriptionAuditLogEntity, AuditLogEntry]):
    def __init__(self):
        super().__init__(SubscriptionAuditLogEntity, AuditLogEntry)

    @trace_span
    async def record(self, entry: AuditLogEntryCreateModel) -> AuditLogEntry:
        return await self.create(entry)

    @trace_span
    async def record_best_effort(self, entry: AuditLogEntryCreateModel) -> bool:
        """
        Write an entry inside a savepoint of the current transaction.

        A failure rolls back only the savepoint and is logged; the caller's
        transaction carries on.

        Returns:
            True when the entry was written
        """
        try:
            async with self._get_session() as session:
                async with savepoint(session):
                    await self.record(entry)
            return True
        except Exception as e:
            logger.warning(
                f"Audit log write failed for subscription {entry.subscription_id}: {e}",
                extra={
                    "subscription_id": entry.subscription_id,
                    "action": entry.action,
                    "error": str(e),
                },
            )
            return False

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> List[AuditLogEntry]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionAuditLogEntity)
                .where(SubscriptionAuditLogEntity.subscription_id == subscription_id)
                .order_by(SubscriptionAuditLogEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())
