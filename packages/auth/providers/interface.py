from abc import ABC, abstractmethod
from typing import Optional

from packages.auth.providers.models import SSOUserInfo, SSOProvider


class SSOProviderInterface(ABC):
    """Interface for SSO providers"""

    @abstractmethod
    async def get_user_info(self, token: str) -> SSOUserInfo:
        """
        Verify a session token and extract the user from its claims.

        Raises:
            AuthenticationError: If the token is missing, expired or invalid
        """
        pass

    @abstractmethod
    async def get_user_email(self, provider_user_id: str) -> Optional[str]:
        """Look up a user's primary email. Returns None when unavailable."""
        pass

    @abstractmethod
    def get_provider_name(self) -> SSOProvider:
        """Get the provider name"""
        pass
