"""
Credit API routes.

Protected endpoints for reading and spending credits.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from common.core.constants import UPGRADE_REDIRECT_PATH
from common.core.exceptions import ValidationError
from common.providers.rate_limiter.limiter import limiter
from packages.auth.dependencies import get_current_user
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.dependencies import get_access_guard, get_credit_service
from packages.billing.models.domain.credits import CreditOperationRequest
from packages.billing.models.domain.enums import CreditOperation
from packages.billing.models.schemas.billing import (
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditLedgerEntryResponse,
    InsufficientCreditsResponse,
    UseCreditsRequest,
)
from packages.billing.services.access_guard import AccessGuard
from packages.billing.services.credit_service import CreditService

router = APIRouter()


@router.get("/balance", response_model=CreditBalanceResponse)
async def get_balance(
    current_user: AuthenticatedUser = Depends(get_current_user),
    credit_service: CreditService = Depends(get_credit_service),
):
    """Get the caller's credit balance."""
    balance = await credit_service.get_balance(current_user.user_key)
    return CreditBalanceResponse(**balance.model_dump())


@router.post(
    "/use",
    response_model=CreditBalanceResponse,
    responses={status.HTTP_403_FORBIDDEN: {"model": InsufficientCreditsResponse}},
)
@limiter.limit("30/minute")
async def use_credits(
    request: Request,
    body: UseCreditsRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    access_guard: AccessGuard = Depends(get_access_guard),
    credit_service: CreditService = Depends(get_credit_service),
):
    """
    Spend credits on a feature.

    The access guard runs first; when it denies, the body tells the client
    whether to send the user to the pricing page. The debit itself is
    re-checked atomically, so a concurrent spend can still turn into a 403.
    """
    if body.amount <= 0:
        raise ValidationError("Invalid credit amount")

    check = await access_guard.check_credits(
        current_user, body.operation, body.amount
    )
    if not check.has_credits:
        denial = InsufficientCreditsResponse(
            error=check.error or "Insufficient credits",
            requires_upgrade=check.requires_upgrade,
            redirect_to=UPGRADE_REDIRECT_PATH if check.requires_upgrade else None,
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=denial.model_dump(by_alias=True, exclude_none=True),
        )

    balance = await credit_service.apply_operation(
        CreditOperationRequest(
            subscription_id=check.subscription_id,
            amount=body.amount,
            operation=CreditOperation.USE.value,
            description=body.description or f"Credit usage for {body.operation}",
        )
    )
    return CreditBalanceResponse(**balance.model_dump())


@router.get("/history", response_model=CreditHistoryResponse)
async def get_history(
    limit: int = Query(default=50, ge=1, le=200),
    current_user: AuthenticatedUser = Depends(get_current_user),
    credit_service: CreditService = Depends(get_credit_service),
):
    """Most recent credit ledger entries, newest first."""
    entries = await credit_service.get_history(current_user.user_key, limit)
    return CreditHistoryResponse(
        entries=[
            CreditLedgerEntryResponse(**entry.model_dump()) for entry in entries
        ]
    )
