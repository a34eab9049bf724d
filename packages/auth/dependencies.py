from typing import Annotated, Optional
from fastapi import Depends, HTTPException, status, Header

from common.core.otel_axiom_exporter import trace_span
from common.core.exceptions import AuthenticationError
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.auth.services.sso_auth_service import SSOAuthService


def get_sso_auth_service() -> SSOAuthService:
    """Get SSOAuthService instance."""
    return SSOAuthService()


@trace_span
async def get_current_user(
    authorization: Annotated[Optional[str], Header()] = None,
    sso_auth_service: SSOAuthService = Depends(get_sso_auth_service),
) -> AuthenticatedUser:
    """Get current authenticated user from the Clerk session JWT."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ", 1)[1]

    try:
        return await sso_auth_service.authenticate_user_from_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
