"""
Stripe implementation of payment provider.
"""

from typing import Optional
import stripe

from common.core.config import settings
from common.core.exceptions import UpstreamError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.stripe_webhooks import StripeSubscriptionData
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(self, client: Optional[stripe.StripeClient] = None):
        """Initialize a Stripe client with API credentials."""
        # Only a client built here is owned (and closed) by this provider
        self._http_client: Optional[stripe.HTTPXClient] = None
        if client is None:
            self._http_client = stripe.HTTPXClient(
                timeout=settings.stripe_timeout_seconds
            )
            client = stripe.StripeClient(
                settings.stripe_secret_key, http_client=self._http_client
            )
        self.client = client

    async def close(self) -> None:
        """Close the HTTPX pools behind the Stripe client."""
        if self._http_client is None:
            return
        http_client, self._http_client = self._http_client, None
        http_client.close()
        await http_client.close_async()
        logger.info("Closed Stripe HTTP client")

    @trace_span
    async def create_customer(self, user_key: str, email: Optional[str] = None) -> str:
        """Create a Stripe customer."""
        params = {"metadata": {"user_key": user_key}}
        if email:
            params["email"] = email

        try:
            customer = await self.client.customers.create_async(params=params)
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create Stripe customer: {str(e)}",
                extra={"user_key": user_key, "error": str(e)},
            )
            raise UpstreamError(f"Stripe customer creation failed: {e}") from e

        logger.info(
            "Created Stripe customer",
            extra={"user_key": user_key, "customer_id": customer.id},
        )
        return customer.id

    @trace_span
    async def create_checkout_session(
        self,
        user_key: str,
        price_id: str,
        plan_id: str,
        success_url: str,
        cancel_url: str,
        customer_ref: Optional[str] = None,
    ) -> str:
        """
        Create Stripe checkout session in subscription mode.

        Returns:
            Hosted checkout URL
        """
        metadata = {"user_key": user_key, "plan_id": plan_id}
        params = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_key,
            "metadata": metadata,
            # Copied onto the subscription so later subscription events
            # carry the user key too
            "subscription_data": {"metadata": metadata},
        }
        if customer_ref:
            params["customer"] = customer_ref

        try:
            session = await self.client.checkout.sessions.create_async(params=params)
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create checkout session: {str(e)}",
                extra={"user_key": user_key, "plan_id": plan_id, "error": str(e)},
            )
            raise UpstreamError(f"Stripe checkout session failed: {e}") from e

        logger.info(
            "Created Stripe checkout session",
            extra={"user_key": user_key, "plan_id": plan_id, "session_id": session.id},
        )

        if not session.url:
            raise UpstreamError("Stripe checkout session has no URL")
        return session.url

    @trace_span
    async def retrieve_subscription(self, subscription_ref: str) -> StripeSubscriptionData:
        try:
            subscription = await self.client.subscriptions.retrieve_async(
                subscription_ref
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to retrieve subscription: {str(e)}",
                extra={"subscription_ref": subscription_ref, "error": str(e)},
            )
            raise UpstreamError(f"Stripe subscription lookup failed: {e}") from e

        return StripeSubscriptionData.model_validate(subscription.to_dict())

    @trace_span
    async def retrieve_customer_email(self, customer_ref: str) -> Optional[str]:
        try:
            customer = await self.client.customers.retrieve_async(customer_ref)
        except stripe.StripeError as e:
            logger.warning(
                f"Failed to retrieve customer: {str(e)}",
                extra={"customer_ref": customer_ref, "error": str(e)},
            )
            return None

        return getattr(customer, "email", None)

    @trace_span
    async def cancel_at_period_end(self, subscription_ref: str) -> None:
        """Cancel Stripe subscription at the end of the current period."""
        try:
            await self.client.subscriptions.update_async(
                subscription_ref, params={"cancel_at_period_end": True}
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to cancel subscription: {str(e)}",
                extra={"subscription_ref": subscription_ref, "error": str(e)},
            )
            raise UpstreamError(f"Stripe cancellation failed: {e}") from e

        logger.info(
            "Stripe subscription set to cancel at period end",
            extra={"subscription_ref": subscription_ref},
        )

    @trace_span
    async def health_check(self) -> bool:
        """Check Stripe health."""
        try:
            await self.client.balance.retrieve_async()
            return True
        except Exception as e:
            logger.error(f"Payment health check failed: {e}")
            return False
