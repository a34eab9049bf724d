"""
Repository for processed webhook event ids.
"""

from sqlalchemy import select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.webhook_event import ProcessedWebhookEventEntity
from packages.billing.models.domain.stripe_webhooks import (
    ProcessedWebhookEvent,
    ProcessedWebhookEventCreateModel,
)


class WebhookEventRepository(
    BaseRepository[ProcessedWebhookEventEntity, ProcessedWebhookEvent]
):
    def __init__(self):
        super().__init__(ProcessedWebhookEventEntity, ProcessedWebhookEvent)

    @trace_span
    async def is_processed(self, event_id: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(ProcessedWebhookEventEntity.id).where(
                    ProcessedWebhookEventEntity.event_id == event_id
                )
            )
            return result.scalar_one_or_none() is not None

    @trace_span
    async def mark_processed(self, event_id: str, event_type: str) -> None:
        await self.create(
            ProcessedWebhookEventCreateModel(event_id=event_id, event_type=event_type)
        )
