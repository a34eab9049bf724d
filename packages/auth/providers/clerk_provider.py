import json
import time
from typing import Any, Dict, Optional

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm
from pydantic import ValidationError as PydanticValidationError

from common.core.config import settings
from common.core.exceptions import AuthenticationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.providers.interface import SSOProviderInterface
from packages.auth.providers.models import (
    ClerkSessionClaims,
    ClerkUserRecord,
    SSOProvider,
    SSOUserInfo,
)

logger = get_logger(__name__)


class ClerkProvider(SSOProviderInterface):
    """Clerk session token verification (networkless apart from JWKS)"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize Clerk provider with settings configuration"""
        if not settings.clerk_issuer:
            raise ValueError("Clerk configuration missing: clerk_issuer required")

        self.issuer = settings.clerk_issuer.rstrip("/")
        self.jwks_uri = settings.clerk_jwks_endpoint
        self.authorized_parties = settings.clerk_authorized_parties
        self.timeout = httpx.Timeout(settings.clerk_timeout_seconds)
        self.transport = transport
        self.min_refresh_seconds = settings.clerk_jwks_min_refresh_seconds
        self._signing_keys: Dict[str, Any] = {}
        self._jwks_fetched_at: Optional[float] = None

    @trace_span
    async def get_user_info(self, token: str) -> SSOUserInfo:
        claims = await self._verify_token(token)
        return SSOUserInfo(provider_user_id=claims.sub, email=claims.email)

    def get_provider_name(self) -> SSOProvider:
        """Get provider name"""
        return SSOProvider.CLERK

    @trace_span
    async def get_user_email(self, provider_user_id: str) -> Optional[str]:
        """Primary email from the Clerk Backend API, if a secret key is set"""
        if not settings.clerk_secret_key:
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(
                    f"{settings.clerk_api_url.rstrip('/')}/users/{provider_user_id}",
                    headers={"Authorization": f"Bearer {settings.clerk_secret_key}"},
                )
                response.raise_for_status()
                return ClerkUserRecord.model_validate(response.json()).primary_email
        except (httpx.HTTPError, PydanticValidationError) as e:
            logger.warning(
                f"Clerk user lookup failed: {str(e)}",
                extra={"provider_user_id": provider_user_id, "error": str(e)},
            )
            return None

    @trace_span
    async def _verify_token(self, token: str) -> ClerkSessionClaims:
        """Verify Clerk JWT signature and claims"""
        try:
            unverified_header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        kid = unverified_header.get("kid")
        if not kid:
            raise AuthenticationError("Token header missing 'kid'")

        signing_key = await self._get_signing_key(kid)

        try:
            payload = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                issuer=self.issuer,
                leeway=5,
                options={
                    "verify_aud": False,
                    "require": ["exp", "iss", "sub"],
                },
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        claims = ClerkSessionClaims.model_validate(payload)

        if (
            self.authorized_parties
            and claims.azp
            and claims.azp not in self.authorized_parties
        ):
            raise AuthenticationError("Token issued for an unauthorized party")

        return claims

    async def _get_signing_key(self, kid: str):
        """Signing key for a kid, refreshing the JWKS on a miss at most once per interval"""
        if kid not in self._signing_keys and self._may_refresh():
            await self._refresh_jwks()

        key = self._signing_keys.get(kid)
        if key is None:
            raise AuthenticationError(f"Unable to find signing key for kid: {kid}")
        return key

    def _may_refresh(self) -> bool:
        if self._jwks_fetched_at is None:
            return True
        return time.monotonic() - self._jwks_fetched_at >= self.min_refresh_seconds

    @trace_span
    async def _refresh_jwks(self) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(self.jwks_uri)
                response.raise_for_status()
                jwks = response.json()
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to fetch JWKS: {str(e)}",
                extra={"jwks_uri": self.jwks_uri, "error": str(e)},
            )
            raise AuthenticationError("Unable to verify token")

        self._signing_keys = {
            key["kid"]: RSAAlgorithm.from_jwk(json.dumps(key))
            for key in jwks.get("keys", [])
            if key.get("kid") and key.get("kty") == "RSA"
        }
        self._jwks_fetched_at = time.monotonic()
