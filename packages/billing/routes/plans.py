"""
Plans API routes.

Public endpoint for retrieving available subscription plans.
"""

from fastapi import APIRouter, Depends

from packages.billing.models.domain.plans import PlansResponse
from packages.billing.plans import PlanCatalog, get_plan_catalog

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans(plan_catalog: PlanCatalog = Depends(get_plan_catalog)):
    """
    Get all available subscription plans.

    Returns price, Stripe price id and credit policy for each plan.
    This endpoint is public (no auth required) for pricing pages.
    """
    return PlansResponse(plans=plan_catalog.to_info())
