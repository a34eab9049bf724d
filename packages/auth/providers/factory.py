"""Factory for creating singleton SSO provider instances."""

from typing import Dict, Optional
from packages.auth.providers.interface import SSOProviderInterface
from packages.auth.providers.models import SSOProvider
from packages.auth.providers.clerk_provider import ClerkProvider


class SSOProviderFactory:
    """Factory for creating and managing SSO provider singletons."""

    _instances: Dict[SSOProvider, SSOProviderInterface] = {}

    @classmethod
    def get_provider(cls, provider: SSOProvider) -> SSOProviderInterface:
        """Get or create a singleton instance of the specified SSO provider.

        Singletons keep the JWKS cache warm across requests.

        Raises:
            ValueError: If the provider is not supported
        """
        if provider not in cls._instances:
            cls._instances[provider] = cls._create_provider(provider)

        return cls._instances[provider]

    @classmethod
    def _create_provider(cls, provider: SSOProvider) -> SSOProviderInterface:
        if provider == SSOProvider.CLERK:
            return ClerkProvider()
        raise ValueError(f"Unsupported SSO provider: {provider}. Supported: CLERK.")

    @classmethod
    def clear_cache(cls, provider: Optional[SSOProvider] = None):
        """Clear cached provider instances.

        Args:
            provider: Specific provider to clear, or None to clear all
        """
        if provider:
            cls._instances.pop(provider, None)
        else:
            cls._instances.clear()


def get_sso_provider(provider: SSOProvider = SSOProvider.CLERK) -> SSOProviderInterface:
    """Convenience function to get an SSO provider instance."""
    return SSOProviderFactory.get_provider(provider)
