"""
Stripe webhook handler for billing events.

Handles events from Stripe payment platform:
- Checkout session completion (first paid allocation)
- Subscription updates (plan changes)
- Subscription deletion (soft cancellation)
- Paid invoices (period renewal)

Each event is applied in one transaction together with its processed-event
record, so a redelivered event id is acknowledged without running again.
Emails go out only after the transaction commits.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe
from fastapi import Request, HTTPException, status
from pydantic import BaseModel, ValidationError as PydanticValidationError

from common.core.config import settings
from common.core.exceptions import AppException
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.models.domain.credits import AuditLogEntryCreateModel
from packages.billing.models.domain.enums import AuditAction, BillingInterval
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.stripe_webhooks import (
    StripeCheckoutSessionData,
    StripeInvoiceData,
    StripeSubscriptionData,
    StripeWebhookPayload,
    StripeWebhookType,
    from_timestamp,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.plans import PlanCatalog, get_plan_catalog
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.audit_log_repository import AuditLogRepository
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
)
from packages.billing.services.credit_service import CreditService
from packages.notifications.services.notification_service import (
    NotificationService,
)

logger = get_logger(__name__)

# Work to run once the event's transaction has committed
PostCommit = Optional[Callable[[], Awaitable[Any]]]


class StripeObjects(BaseModel):
    """Stripe API state an event needs, fetched before its transaction."""

    subscription: Optional[StripeSubscriptionData] = None
    customer_email: Optional[str] = None


EventFetcher = Callable[[Dict[str, Any]], Awaitable[StripeObjects]]
EventHandler = Callable[[Dict[str, Any], StripeObjects], Awaitable[PostCommit]]

# Invoice of the first period; its credits come from checkout.session.completed
INITIAL_INVOICE_REASON = "subscription_create"


class StripeWebhookProcessor:
    """Applies verified Stripe events to subscriptions and credits."""

    def __init__(
        self,
        payment_provider: Optional[PaymentProviderInterface] = None,
        credit_service: Optional[CreditService] = None,
        notification_service: Optional[NotificationService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        audit_repo: Optional[AuditLogRepository] = None,
        event_repo: Optional[WebhookEventRepository] = None,
        plan_catalog: Optional[PlanCatalog] = None,
        webhook_secret: Optional[str] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.event_repo = event_repo or WebhookEventRepository()
        self.plan_catalog = plan_catalog or get_plan_catalog()
        self.credit_service = credit_service or CreditService(
            subscription_repo=self.subscription_repo,
            audit_repo=self.audit_repo,
            plan_catalog=self.plan_catalog,
        )
        self.notifications = notification_service or NotificationService()
        self.webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.stripe_webhook_secret
        )
        self._payment = payment_provider

        self._handlers: Dict[str, EventHandler] = {
            StripeWebhookType.CHECKOUT_SESSION_COMPLETED.value: self._handle_checkout_completed,
            StripeWebhookType.SUBSCRIPTION_UPDATED.value: self._handle_subscription_updated,
            StripeWebhookType.SUBSCRIPTION_DELETED.value: self._handle_subscription_deleted,
            StripeWebhookType.INVOICE_PAID.value: self._handle_invoice_paid,
        }
        # Stripe API lookups run before the event's transaction is opened
        self._fetchers: Dict[str, EventFetcher] = {
            StripeWebhookType.CHECKOUT_SESSION_COMPLETED.value: self._fetch_for_checkout,
            StripeWebhookType.INVOICE_PAID.value: self._fetch_for_invoice,
        }

    @property
    def payment(self) -> PaymentProviderInterface:
        if self._payment is None:
            self._payment = get_payment_provider()
        return self._payment

    def verify(self, payload: bytes, sig_header: Optional[str]) -> StripeWebhookPayload:
        """
        Check the stripe-signature header against the raw body and parse it.

        Raises:
            HTTPException: 400 when the header is missing, the signature is
                invalid, or the body is not a Stripe event
        """
        if not sig_header:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing stripe-signature header",
            )

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                sig_header,
                self.webhook_secret,
                tolerance=settings.stripe_webhook_tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.error(f"Stripe webhook signature verification failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
            )

        try:
            return StripeWebhookPayload.model_validate_json(body)
        except PydanticValidationError as e:
            logger.error(
                "Invalid Stripe webhook payload", extra={"validation_errors": e.errors()}
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid webhook payload",
            )

    @trace_span
    async def process(self, event: StripeWebhookPayload) -> dict[str, str]:
        """Apply a verified event once."""
        logger.info(
            f"Received Stripe webhook: {event.type}",
            extra={
                "event_id": event.id,
                "event_type": event.type,
                "livemode": event.livemode,
            },
        )

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(f"Unhandled Stripe webhook type: {event.type}")
            return {"status": "ignored"}

        fetcher = self._fetchers.get(event.type)
        fetched = await fetcher(event.data.object) if fetcher else StripeObjects()

        async with transaction():
            if await self.event_repo.is_processed(event.id):
                logger.info(
                    f"Stripe event {event.id} already processed",
                    extra={"event_id": event.id, "event_type": event.type},
                )
                return {"status": "duplicate"}

            post_commit = await handler(event.data.object, fetched)
            await self.event_repo.mark_processed(event.id, event.type)

        if post_commit is not None:
            await post_commit()

        return {"status": "success"}

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _fetch_for_checkout(self, data: Dict[str, Any]) -> StripeObjects:
        session = StripeCheckoutSessionData.model_validate(data)
        if not session.subscription:
            return StripeObjects()

        fetched = StripeObjects(
            subscription=await self.payment.retrieve_subscription(session.subscription)
        )
        if not session.email and session.customer:
            fetched.customer_email = await self.payment.retrieve_customer_email(
                session.customer
            )
        return fetched

    async def _handle_checkout_completed(
        self, data: Dict[str, Any], fetched: StripeObjects
    ) -> PostCommit:
        """
        Handle checkout.session.completed.

        Brings the user's row onto the purchased plan and allocates its first
        month of credits. The row is found by client_reference_id, then the
        metadata user key, then the Stripe subscription id; it is created
        when the user never loaded their default subscription.
        """
        session = StripeCheckoutSessionData.model_validate(data)
        if not session.subscription or fetched.subscription is None:
            logger.warning(
                "Checkout session without subscription, ignoring",
                extra={"session_id": session.id},
            )
            return None

        stripe_sub = fetched.subscription
        price = stripe_sub.price
        plan = self.plan_catalog.get_by_price_id(price.id if price else None)

        user_key = (
            session.client_reference_id
            or session.metadata.user_key
            or stripe_sub.metadata.user_key
        )

        subscription: Optional[Subscription] = None
        if user_key:
            subscription = await self.subscription_repo.get_by_user_key(user_key)
        if subscription is None:
            subscription = await self.subscription_repo.get_by_external_ref(
                stripe_sub.id
            )
        if subscription is None and not user_key:
            raise AppException(
                f"Checkout session {session.id} has no user reference"
            )

        email = session.email or fetched.customer_email

        start_date = stripe_sub.period_start or datetime.now(timezone.utc)
        end_date = stripe_sub.period_end or _default_period_end(start_date, plan)
        billing_interval = BillingInterval.from_stripe(
            price.recurring.interval if price and price.recurring else None
        )
        amount = (
            Decimal(price.unit_amount) / 100
            if price and price.unit_amount is not None
            else plan.price
        )
        currency = (price.currency if price else plan.currency).upper()
        customer_ref = stripe_sub.customer or session.customer

        already_applied = (
            subscription is not None
            and subscription.external_subscription_ref == stripe_sub.id
            and subscription.plan_id == plan.id.value
        )

        if subscription is None:
            subscription = await self.subscription_repo.create(
                SubscriptionCreateModel(
                    user_key=user_key,
                    email=email,
                    plan_id=plan.id,
                    billing_interval=billing_interval,
                    amount=amount,
                    currency=currency,
                    start_date=start_date,
                    end_date=end_date,
                    external_subscription_ref=stripe_sub.id,
                    external_customer_ref=customer_ref,
                )
            )
        else:
            await self.subscription_repo.update(
                subscription.id,
                SubscriptionUpdateModel(
                    email=email or subscription.email,
                    billing_interval=billing_interval,
                    amount=amount,
                    currency=currency,
                    external_subscription_ref=stripe_sub.id,
                    external_customer_ref=customer_ref,
                    start_date=start_date,
                    end_date=end_date,
                    cancelled=False,
                    cancelled_at=None,
                ),
            )

        if already_applied:
            logger.info(
                f"Stripe subscription {stripe_sub.id} already allocated",
                extra={"subscription_id": subscription.id},
            )
            return None

        await self.credit_service.allocate_initial(
            subscription.id,
            plan,
            details={
                "subscription_id": stripe_sub.id,
                "billing_interval": billing_interval.value,
            },
        )

        logger.info(
            f"Checkout completed for plan {plan.id.value}",
            extra={
                "subscription_id": subscription.id,
                "plan_id": plan.id.value,
                "stripe_subscription_id": stripe_sub.id,
            },
        )

        recipient = email or subscription.email

        async def notify():
            await self.notifications.send_paid_subscription(
                recipient,
                plan.name,
                plan.price,
                plan.currency,
                plan.billing_interval.value,
                plan.credits.monthly,
                end_date,
            )

        return notify

    async def _handle_subscription_updated(
        self, data: Dict[str, Any], fetched: StripeObjects
    ) -> PostCommit:
        """Handle customer.subscription.updated (plan change, new period)."""
        stripe_sub = StripeSubscriptionData.model_validate(data)
        subscription = await self._find_subscription(stripe_sub)
        if subscription is None:
            logger.warning(
                f"No subscription for Stripe subscription {stripe_sub.id}",
                extra={"stripe_subscription_id": stripe_sub.id},
            )
            return None

        price = stripe_sub.price
        plan = self.plan_catalog.get_by_price_id(price.id if price else None)
        await self.credit_service.apply_plan_change(subscription.id, plan)

        period = {}
        if stripe_sub.period_start:
            period["start_date"] = stripe_sub.period_start
        if stripe_sub.period_end:
            period["end_date"] = stripe_sub.period_end
        if price and price.unit_amount is not None:
            period["amount"] = Decimal(price.unit_amount) / 100
            period["currency"] = price.currency.upper()
        if period:
            await self.subscription_repo.update(
                subscription.id, SubscriptionUpdateModel(**period)
            )

        return None

    async def _handle_subscription_deleted(
        self, data: Dict[str, Any], fetched: StripeObjects
    ) -> PostCommit:
        """
        Handle customer.subscription.deleted.

        Soft cancellation only: credits and end_date are left alone.
        """
        stripe_sub = StripeSubscriptionData.model_validate(data)
        subscription = await self._find_subscription(stripe_sub)
        if subscription is None:
            logger.warning(
                f"No subscription for deleted Stripe subscription {stripe_sub.id}",
                extra={"stripe_subscription_id": stripe_sub.id},
            )
            return None

        cancelled_at = (
            from_timestamp(stripe_sub.canceled_at)
            or from_timestamp(stripe_sub.ended_at)
            or datetime.now(timezone.utc)
        )
        await self.subscription_repo.mark_cancelled(subscription.id, cancelled_at)
        await self.audit_repo.record_best_effort(
            AuditLogEntryCreateModel(
                subscription_id=subscription.id,
                action=AuditAction.SUBSCRIPTION_DELETED,
                details={
                    "stripe_subscription_id": stripe_sub.id,
                    "plan_id": subscription.plan_id,
                    "cancelled_at": cancelled_at.isoformat(),
                },
            )
        )

        logger.info(
            "Stripe subscription deleted",
            extra={
                "subscription_id": subscription.id,
                "stripe_subscription_id": stripe_sub.id,
            },
        )
        return None

    async def _fetch_for_invoice(self, data: Dict[str, Any]) -> StripeObjects:
        invoice = StripeInvoiceData.model_validate(data)
        if (
            not invoice.subscription_ref
            or invoice.billing_reason == INITIAL_INVOICE_REASON
        ):
            return StripeObjects()
        return StripeObjects(
            subscription=await self.payment.retrieve_subscription(
                invoice.subscription_ref
            )
        )

    async def _handle_invoice_paid(
        self, data: Dict[str, Any], fetched: StripeObjects
    ) -> PostCommit:
        """Handle invoice.paid: refresh credits for the new billing period."""
        invoice = StripeInvoiceData.model_validate(data)
        subscription_ref = invoice.subscription_ref
        if not subscription_ref:
            logger.info(
                "Invoice without subscription, ignoring",
                extra={"invoice_id": invoice.id},
            )
            return None

        if invoice.billing_reason == INITIAL_INVOICE_REASON:
            logger.info(
                "Initial invoice paid, credits allocated at checkout",
                extra={"invoice_id": invoice.id},
            )
            return None

        stripe_sub = fetched.subscription
        if stripe_sub is None:
            raise AppException(f"Stripe subscription {subscription_ref} not fetched")
        subscription = await self._find_subscription(stripe_sub)
        if subscription is None:
            raise AppException(f"Subscription not found for {subscription_ref}")

        price = stripe_sub.price
        plan = self.plan_catalog.get_by_price_id(price.id if price else None)
        adjustment = await self.credit_service.apply_renewal(
            subscription.id, plan, stripe_sub.period_end, invoice.id
        )
        if not adjustment.applied:
            return None

        next_billing_date = stripe_sub.period_end or subscription.end_date
        recipient = invoice.customer_email or subscription.email

        async def notify():
            await self.notifications.send_renewal_receipt(
                recipient,
                plan.name,
                plan.price,
                plan.currency,
                plan.billing_interval.value,
                plan.credits.monthly,
                next_billing_date,
            )

        return notify

    async def _find_subscription(
        self, stripe_sub: StripeSubscriptionData
    ) -> Optional[Subscription]:
        subscription = await self.subscription_repo.get_by_external_ref(stripe_sub.id)
        if subscription is None and stripe_sub.metadata.user_key:
            subscription = await self.subscription_repo.get_by_user_key(
                stripe_sub.metadata.user_key
            )
        return subscription


def _default_period_end(start_date: datetime, plan: Plan) -> datetime:
    days = 365 if plan.billing_interval == BillingInterval.YEARLY else 30
    return start_date + timedelta(days=days)


def get_stripe_webhook_processor() -> StripeWebhookProcessor:
    return StripeWebhookProcessor()


async def handle_stripe_webhook(
    request: Request, processor: Optional[StripeWebhookProcessor] = None
) -> dict[str, str]:
    """
    Handle incoming webhook from Stripe.

    Validates webhook signature and routes to appropriate handler. Handler
    failures become a 500 so Stripe redelivers the event.
    """
    processor = processor or get_stripe_webhook_processor()

    payload_bytes = await request.body()
    event = processor.verify(payload_bytes, request.headers.get("stripe-signature"))

    try:
        return await processor.process(event)
    except Exception as e:
        logger.error(
            f"Failed to process Stripe webhook: {str(e)}",
            extra={"event_id": event.id, "event_type": event.type, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )
