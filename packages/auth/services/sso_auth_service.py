from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.identity import derive_user_key
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.auth.providers.factory import get_sso_provider
from packages.auth.providers.interface import SSOProviderInterface
from packages.auth.providers.models import SSOProvider

logger = get_logger(__name__)


class SSOAuthService:
    """Turns a verified session token into the request's user context"""

    def __init__(
        self,
        provider: SSOProvider = SSOProvider.CLERK,
        sso_provider: Optional[SSOProviderInterface] = None,
    ):
        self.provider = provider
        self._sso_provider = sso_provider

    @property
    def sso_provider(self) -> SSOProviderInterface:
        # Resolved on first use so requests rejected early never need Clerk config
        if self._sso_provider is None:
            self._sso_provider = get_sso_provider(self.provider)
        return self._sso_provider

    @trace_span
    async def authenticate_user_from_token(self, token: str) -> AuthenticatedUser:
        user_info = await self.sso_provider.get_user_info(token)
        user_key = derive_user_key(user_info.provider_user_id)

        logger.info(
            "Authenticated user",
            extra={
                "provider": self.sso_provider.get_provider_name().value,
                "user_key": user_key,
            },
        )

        return AuthenticatedUser(
            user_id=user_info.provider_user_id,
            user_key=user_key,
            email=user_info.email,
        )

    @trace_span
    async def resolve_email(self, user: AuthenticatedUser) -> Optional[str]:
        """Email from the token, falling back to a provider lookup"""
        if user.email:
            return user.email
        return await self.sso_provider.get_user_email(user.user_id)
