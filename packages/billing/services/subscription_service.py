"""
Service for managing subscriptions.

Owns the non-credit lifecycle of the subscription row: lazy creation of the
free default, user-initiated cancellation and the start of a paid checkout.
Credit fields are left to CreditService.
"""

from typing import Optional
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from common.core.exceptions import ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import savepoint, transaction
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.auth.services.sso_auth_service import SSOAuthService
from packages.billing.exceptions import InvalidPlanError, SubscriptionNotFoundError
from packages.billing.models.domain.credits import AuditLogEntryCreateModel
from packages.billing.models.domain.enums import AuditAction, PlanId
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.schemas.billing import CheckoutSessionRequest
from packages.billing.plans import PlanCatalog, get_plan_catalog
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.audit_log_repository import AuditLogRepository
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.notifications.services.notification_service import (
    NotificationService,
)

logger = get_logger(__name__)

# Lifetime of the free default row
DEFAULT_SUBSCRIPTION_DAYS = 365


class SubscriptionService:
    """Service for subscription management."""

    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        audit_repo: Optional[AuditLogRepository] = None,
        payment_provider: Optional[PaymentProviderInterface] = None,
        notification_service: Optional[NotificationService] = None,
        sso_auth_service: Optional[SSOAuthService] = None,
        plan_catalog: Optional[PlanCatalog] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.notifications = notification_service or NotificationService()
        self.plan_catalog = plan_catalog or get_plan_catalog()
        self._payment = payment_provider
        self._sso_auth_service = sso_auth_service

    @property
    def payment(self) -> PaymentProviderInterface:
        if self._payment is None:
            self._payment = get_payment_provider()
        return self._payment

    @property
    def sso_auth_service(self) -> SSOAuthService:
        if self._sso_auth_service is None:
            self._sso_auth_service = SSOAuthService()
        return self._sso_auth_service

    @trace_span
    async def get_by_user_key(self, user_key: str) -> Optional[Subscription]:
        return await self.subscription_repo.get_by_user_key(user_key)

    @trace_span
    async def get_or_create_current(self, user: AuthenticatedUser) -> Subscription:
        """
        Return the user's subscription, creating the free default on first access.

        The insert runs in a savepoint; when a concurrent request wins the
        unique user_key race, the winner's row is returned instead.
        """
        existing = await self.subscription_repo.get_by_user_key(user.user_key)
        if existing:
            return existing

        free_plan = self.plan_catalog.get(PlanId.FREE)
        email = await self._resolve_email(user)
        start_date = datetime.now(timezone.utc)
        end_date = start_date + timedelta(days=DEFAULT_SUBSCRIPTION_DAYS)

        async with transaction() as session:
            try:
                async with savepoint(session):
                    created = await self.subscription_repo.create(
                        SubscriptionCreateModel(
                            user_key=user.user_key,
                            email=email,
                            plan_id=free_plan.id,
                            billing_interval=free_plan.billing_interval,
                            amount=free_plan.price,
                            currency=free_plan.currency,
                            start_date=start_date,
                            end_date=end_date,
                            credits_remaining=free_plan.credits.monthly,
                            credits_limit=free_plan.credits.maximum,
                        )
                    )
            except IntegrityError:
                logger.info(
                    "Default subscription created concurrently, using existing row",
                    extra={"user_key": user.user_key},
                )
                winner = await self.subscription_repo.get_by_user_key(user.user_key)
                if winner is None:
                    raise
                return winner

            await self.audit_repo.record_best_effort(
                AuditLogEntryCreateModel(
                    subscription_id=created.id,
                    action=AuditAction.DEFAULT_SUBSCRIPTION_CREATED,
                    details={
                        "plan_id": free_plan.id.value,
                        "end_date": end_date.isoformat(),
                    },
                )
            )

        logger.info(
            "Created default subscription",
            extra={"user_key": user.user_key, "subscription_id": created.id},
        )

        await self.notifications.send_free_welcome(email, end_date)
        return created

    @trace_span
    async def cancel_subscription(self, user_key: str) -> Subscription:
        """
        Cancel a paid subscription at the end of its period.

        Only the cancellation flags change; credits and end_date stay so the
        plan remains usable until end_date.

        Raises:
            SubscriptionNotFoundError: No row for the user
            ValidationError: The user is on the free plan
        """
        async with transaction():
            subscription = await self.subscription_repo.get_by_user_key(user_key)
            if not subscription:
                raise SubscriptionNotFoundError("No active subscription found")

            if subscription.is_free:
                raise ValidationError("Cannot cancel free subscription")

            cancelled_at = datetime.now(timezone.utc)
            await self.subscription_repo.mark_cancelled(subscription.id, cancelled_at)
            await self.audit_repo.record_best_effort(
                AuditLogEntryCreateModel(
                    subscription_id=subscription.id,
                    action=AuditAction.CANCELLATION_REQUESTED,
                    details={
                        "plan_id": subscription.plan_id,
                        "end_date": subscription.end_date.isoformat(),
                        "external_subscription_ref": subscription.external_subscription_ref,
                    },
                )
            )

        logger.info(
            "Subscription cancelled",
            extra={"user_key": user_key, "subscription_id": subscription.id},
        )

        if subscription.external_subscription_ref:
            try:
                await self.payment.cancel_at_period_end(
                    subscription.external_subscription_ref
                )
            except Exception as e:
                logger.error(
                    f"Failed to cancel Stripe subscription: {str(e)}",
                    extra={
                        "subscription_id": subscription.id,
                        "external_subscription_ref": subscription.external_subscription_ref,
                    },
                )

        plan = self.plan_catalog.find(subscription.plan_id)
        await self.notifications.send_cancellation(
            subscription.email,
            plan.name if plan else subscription.plan_id,
            subscription.end_date,
        )

        return subscription.model_copy(
            update={"cancelled": True, "cancelled_at": cancelled_at}
        )

    @trace_span
    async def create_checkout(
        self, user: AuthenticatedUser, request: CheckoutSessionRequest
    ) -> str:
        """
        Start a Stripe checkout for a paid plan.

        Returns:
            Checkout URL

        Raises:
            ValidationError: A required field is missing
            InvalidPlanError: Unknown or free plan, or the price doesn't belong to it
        """
        if not all(
            [request.price_id, request.plan_id, request.success_url, request.cancel_url]
        ):
            raise ValidationError("Missing required fields")

        plan = self.plan_catalog.get(request.plan_id)
        if plan.is_free or plan.stripe_price_id != request.price_id:
            raise InvalidPlanError(
                f"Price {request.price_id} does not match plan {request.plan_id}"
            )

        subscription = await self.get_or_create_current(user)

        customer_ref = subscription.external_customer_ref
        if not customer_ref:
            customer_ref = await self.payment.create_customer(
                user.user_key, email=subscription.email or user.email
            )
            await self.subscription_repo.update(
                subscription.id,
                SubscriptionUpdateModel(external_customer_ref=customer_ref),
            )

        url = await self.payment.create_checkout_session(
            user_key=user.user_key,
            price_id=plan.stripe_price_id,
            plan_id=plan.id.value,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            customer_ref=customer_ref,
        )

        logger.info(
            "Checkout session created",
            extra={"user_key": user.user_key, "plan_id": plan.id.value},
        )
        return url

    async def _resolve_email(self, user: AuthenticatedUser) -> Optional[str]:
        try:
            return await self.sso_auth_service.resolve_email(user)
        except Exception as e:
            logger.warning(
                f"Could not resolve email for user: {str(e)}",
                extra={"user_key": user.user_key},
            )
            return user.email
