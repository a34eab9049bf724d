"""
Pre-flight credit check for credit-consuming features.
"""

from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.context import readonly
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.models.domain.credits import CreditCheckResult
from packages.billing.plans import PlanCatalog, get_plan_catalog
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)

logger = get_logger(__name__)

UPGRADE_REQUIRED_MESSAGE = (
    "This feature requires a paid subscription. Please upgrade your plan."
)
SUBSCRIPTION_EXPIRED_MESSAGE = (
    "Your subscription has expired. Please renew your plan."
)


class AccessGuard:
    """
    Decides whether a user may start a credit-consuming operation.

    Fails closed and never raises: every problem becomes a denied result.
    Read-only; the actual debit happens in CreditService.
    """

    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        plan_catalog: Optional[PlanCatalog] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.plan_catalog = plan_catalog or get_plan_catalog()

    @trace_span
    @readonly
    async def check_credits(
        self,
        user: Optional[AuthenticatedUser],
        operation_name: str,
        required_amount: int,
    ) -> CreditCheckResult:
        if user is None:
            return CreditCheckResult(has_credits=False, error="Unauthorized")

        try:
            subscription = await self.subscription_repo.get_by_user_key(user.user_key)
            if not subscription:
                return CreditCheckResult(
                    has_credits=False, error="No active subscription found"
                )

            plan = self.plan_catalog.find(subscription.plan_id)
            if plan is None:
                return CreditCheckResult(
                    has_credits=False, error="Invalid subscription plan"
                )

            if subscription.is_expired():
                logger.info(
                    f"Credit check denied for {operation_name}: subscription expired",
                    extra={
                        "subscription_id": subscription.id,
                        "end_date": subscription.end_date.isoformat(),
                    },
                )
                return CreditCheckResult(
                    has_credits=False,
                    subscription_id=subscription.id,
                    credits_remaining=subscription.credits_remaining,
                    error=SUBSCRIPTION_EXPIRED_MESSAGE,
                    requires_upgrade=True,
                )

            if plan.is_free and plan.credits.monthly == 0:
                return CreditCheckResult(
                    has_credits=False,
                    subscription_id=subscription.id,
                    credits_remaining=0,
                    error=UPGRADE_REQUIRED_MESSAGE,
                    requires_upgrade=True,
                )

            has_credits = subscription.credits_remaining >= required_amount
            if not has_credits:
                logger.info(
                    f"Credit check failed for {operation_name}",
                    extra={
                        "subscription_id": subscription.id,
                        "operation_name": operation_name,
                        "required": required_amount,
                        "credits_remaining": subscription.credits_remaining,
                    },
                )

            return CreditCheckResult(
                has_credits=has_credits,
                subscription_id=subscription.id,
                credits_remaining=subscription.credits_remaining,
                error=None if has_credits else "Insufficient credits",
                requires_upgrade=not has_credits and plan.is_free,
            )

        except Exception as e:
            logger.error(
                f"Error checking credits: {str(e)}",
                extra={"user_key": user.user_key, "error": str(e)},
            )
            return CreditCheckResult(has_credits=False, error="Failed to check credits")
