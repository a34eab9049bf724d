"""
Interface for payment providers.

Abstracts payment processing away from specific platforms (Stripe, Paddle, etc.)
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.billing.models.domain.stripe_webhooks import StripeSubscriptionData


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(self, user_key: str, email: Optional[str] = None) -> str:
        """
        Create a customer record for a user.

        Returns:
            Provider customer ID
        """
        pass

    @abstractmethod
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
        Create a hosted checkout session for a subscription purchase.

        The user key is attached as client reference and metadata so the
        completion webhook can find the subscription row.

        Args:
            user_key: Stable internal user key
            price_id: Provider price to subscribe to
            plan_id: Plan that price belongs to
            success_url: URL to redirect on success
            cancel_url: URL to redirect on cancel
            customer_ref: Existing provider customer to attach the session to

        Returns:
            Checkout URL
        """
        pass

    @abstractmethod
    async def retrieve_subscription(self, subscription_ref: str) -> StripeSubscriptionData:
        """Fetch the current state of a provider subscription."""
        pass

    @abstractmethod
    async def retrieve_customer_email(self, customer_ref: str) -> Optional[str]:
        """Look up the email on a provider customer, if any."""
        pass

    @abstractmethod
    async def cancel_at_period_end(self, subscription_ref: str) -> None:
        """Stop renewal; the subscription stays active until the period ends."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment provider is reachable.

        Returns:
            True if healthy, False otherwise
        """
        pass

    async def close(self) -> None:
        """Release any network resources held by the provider."""
        return None
