"""
Repository for subscription management.

Credit fields are only written through the statement helpers at the bottom
of this class, each of which is a single UPDATE so the balance check and the
write can't be split by a concurrent request.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import case, select, update

from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import Subscription
from common.core.otel_axiom_exporter import trace_span


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing user subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    async def _get_one(self, query) -> Optional[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                query.execution_options(populate_existing=True)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_by_user_key(self, user_key: str) -> Optional[Subscription]:
        """Get the subscription row of a user."""
        return await self._get_one(
            select(SubscriptionEntity).where(SubscriptionEntity.user_key == user_key)
        )

    @trace_span
    async def get_by_external_ref(
        self, external_subscription_ref: str
    ) -> Optional[Subscription]:
        """Get a subscription by its Stripe subscription id."""
        return await self._get_one(
            select(SubscriptionEntity).where(
                SubscriptionEntity.external_subscription_ref
                == external_subscription_ref
            )
        )

    @trace_span
    async def get_for_update(self, id: int) -> Optional[Subscription]:
        """Read a row and hold its lock until the enclosing transaction ends."""
        return await self._get_one(
            select(SubscriptionEntity)
            .where(SubscriptionEntity.id == id)
            .with_for_update()
        )

    @trace_span
    async def mark_cancelled(self, id: int, cancelled_at: datetime) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == id)
                .values(cancelled=True, cancelled_at=cancelled_at)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Credit statements (credit service only)
    # ------------------------------------------------------------------

    @trace_span
    async def debit_credits(self, id: int, amount: int) -> bool:
        """
        Subtract credits only if the balance covers the amount.

        Returns:
            True when the row was updated, False when it is missing or the
            balance is too low.
        """
        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(
                    SubscriptionEntity.id == id,
                    SubscriptionEntity.credits_remaining >= amount,
                )
                .values(
                    credits_remaining=SubscriptionEntity.credits_remaining - amount
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    @trace_span
    async def add_credits_capped(self, id: int, amount: int) -> bool:
        """Add credits, capping the balance at credits_limit."""
        new_balance = SubscriptionEntity.credits_remaining + amount
        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == id)
                .values(
                    credits_remaining=case(
                        (
                            new_balance > SubscriptionEntity.credits_limit,
                            SubscriptionEntity.credits_limit,
                        ),
                        else_=new_balance,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    @trace_span
    async def write_credit_state(self, id: int, **values) -> bool:
        """
        Set absolute credit state (balance, limit, plan, renewal fields).

        Callers must hold the row lock from get_for_update() when the values
        were derived from a previous read.
        """
        allowed = {
            "credits_remaining",
            "credits_limit",
            "credits_reset_count",
            "plan_id",
            "end_date",
            "last_invoice_ref",
        }
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(f"Not credit state fields: {sorted(unknown)}")

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
