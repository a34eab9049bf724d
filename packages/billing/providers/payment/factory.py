"""
Factory for the shared payment provider instance.
"""

from typing import Optional

from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.providers.payment.stripe_payment import StripePaymentProvider


class PaymentProviderFactory:
    """Owns the one payment provider (and its HTTP pool) for the process."""

    _instance: Optional[PaymentProviderInterface] = None

    @classmethod
    def get_provider(cls) -> PaymentProviderInterface:
        """Get or create the singleton payment provider.

        Only Stripe is supported; the interface keeps the services independent
        of it.
        """
        if cls._instance is None:
            cls._instance = StripePaymentProvider()
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        """Close the provider's HTTP clients and drop the cached instance."""
        instance, cls._instance = cls._instance, None
        if instance is not None:
            await instance.close()


def get_payment_provider() -> PaymentProviderInterface:
    """
    Get payment provider instance based on configuration.

    Returns:
        PaymentProviderInterface: Configured payment provider
    """
    return PaymentProviderFactory.get_provider()


async def close_payment_provider() -> None:
    await PaymentProviderFactory.close()
