"""
Transactional emails for subscription lifecycle events.

Every public method is best-effort: failures are logged and reported in the
returned EmailDeliveryResult, never raised.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.notifications import templates
from packages.notifications.models.email import EmailDeliveryResult, EmailMessage
from packages.notifications.providers.email.factory import get_email_provider
from packages.notifications.providers.email.interface import EmailProviderInterface

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, email_provider: Optional[EmailProviderInterface] = None):
        self._email_provider = email_provider

    @property
    def email_provider(self) -> EmailProviderInterface:
        # Built lazily so services that never send mail don't need Resend config
        if self._email_provider is None:
            self._email_provider = get_email_provider()
        return self._email_provider

    @trace_span
    async def send_paid_subscription(
        self,
        email: Optional[str],
        plan_name: str,
        amount: Decimal,
        currency: str,
        billing_interval: str,
        credits: int,
        next_billing_date: datetime,
    ) -> EmailDeliveryResult:
        if not email:
            return self._skipped("paid_subscription")
        return await self._deliver(
            email,
            templates.paid_subscription_email(
                email,
                plan_name,
                amount,
                currency,
                billing_interval,
                credits,
                next_billing_date,
            ),
            tag="paid_subscription",
        )

    @trace_span
    async def send_renewal_receipt(
        self,
        email: Optional[str],
        plan_name: str,
        amount: Decimal,
        currency: str,
        billing_interval: str,
        credits_added: int,
        next_billing_date: datetime,
    ) -> EmailDeliveryResult:
        if not email:
            return self._skipped("renewal_receipt")
        return await self._deliver(
            email,
            templates.paid_subscription_email(
                email,
                plan_name,
                amount,
                currency,
                billing_interval,
                credits_added,
                next_billing_date,
                subject="Payment Received - Credits Updated",
            ),
            tag="renewal_receipt",
        )

    @trace_span
    async def send_free_welcome(
        self, email: Optional[str], end_date: datetime
    ) -> EmailDeliveryResult:
        if not email:
            return self._skipped("free_subscription")
        return await self._deliver(
            email,
            templates.free_subscription_email(email, end_date),
            tag="free_subscription",
        )

    @trace_span
    async def send_cancellation(
        self, email: Optional[str], plan_name: str, end_date: datetime
    ) -> EmailDeliveryResult:
        if not email:
            return self._skipped("cancellation")
        return await self._deliver(
            email,
            templates.cancelled_subscription_email(email, plan_name, end_date),
            tag="cancellation",
        )

    def _skipped(self, tag: str) -> EmailDeliveryResult:
        logger.info(f"No email address for {tag} notification, skipping")
        return EmailDeliveryResult(delivered=False, error="No email address")

    async def _deliver(
        self, email: str, content: Tuple[str, str], tag: str
    ) -> EmailDeliveryResult:
        subject, html = content
        try:
            message_id = await self.email_provider.send(
                EmailMessage(to=[email], subject=subject, html=html, tags=[tag])
            )
            return EmailDeliveryResult(delivered=True, message_id=message_id)
        except Exception as e:
            logger.error(
                f"Failed to send {tag} email: {str(e)}",
                extra={"tag": tag, "error": str(e)},
            )
            return EmailDeliveryResult(delivered=False, error=str(e))
