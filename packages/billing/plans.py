"""
Plan catalog.

Static plan configuration looked up by plan id or by Stripe price id.
Stripe price ids come from settings so test and live mode can differ.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from common.core.config import settings
from packages.billing.exceptions import InvalidPlanError
from packages.billing.models.domain.enums import BillingInterval, PlanId
from packages.billing.models.domain.plans import CreditPolicy, Plan, PlanInfo


class PlanCatalog:
    """Immutable collection of plans."""

    def __init__(self, plans: List[Plan]):
        self._by_id: Dict[str, Plan] = {plan.id.value: plan for plan in plans}
        self._by_price: Dict[str, Plan] = {
            plan.stripe_price_id: plan for plan in plans if plan.stripe_price_id
        }

    def all(self) -> List[Plan]:
        return list(self._by_id.values())

    def find(self, plan_id: str) -> Optional[Plan]:
        key = plan_id.value if isinstance(plan_id, PlanId) else plan_id
        return self._by_id.get(key)

    def get(self, plan_id: str) -> Plan:
        """Get a plan by id or raise InvalidPlanError."""
        plan = self.find(plan_id)
        if plan is None:
            raise InvalidPlanError(f"Invalid plan: {plan_id}")
        return plan

    def get_by_price_id(self, price_id: Optional[str]) -> Plan:
        """Get a plan by its Stripe price id or raise InvalidPlanError."""
        plan = self._by_price.get(price_id) if price_id else None
        if plan is None:
            raise InvalidPlanError(f"Invalid price ID: {price_id}")
        return plan

    def to_info(self) -> List[PlanInfo]:
        return [
            PlanInfo(
                id=plan.id,
                name=plan.name,
                price=plan.price,
                currency=plan.currency,
                billing_interval=plan.billing_interval,
                stripe_price_id=plan.stripe_price_id,
                monthly_credits=plan.credits.monthly,
                rollover=plan.credits.rollover,
                maximum_credits=plan.credits.maximum,
            )
            for plan in self.all()
        ]


def build_default_catalog() -> PlanCatalog:
    return PlanCatalog(
        [
            Plan(
                id=PlanId.FREE,
                name="Free Tier",
                price=Decimal("0"),
                billing_interval=BillingInterval.MONTHLY,
                stripe_price_id=None,
                credits=CreditPolicy(monthly=0, rollover=False, maximum=0),
            ),
            Plan(
                id=PlanId.STANDARD,
                name="Standard Tier",
                price=Decimal("15"),
                billing_interval=BillingInterval.MONTHLY,
                stripe_price_id=settings.stripe_price_id_standard or None,
                credits=CreditPolicy(monthly=1000, rollover=True, maximum=3000),
            ),
            Plan(
                id=PlanId.ENTERPRISE,
                name="Enterprise Tier",
                price=Decimal("60"),
                billing_interval=BillingInterval.MONTHLY,
                stripe_price_id=settings.stripe_price_id_enterprise or None,
                credits=CreditPolicy(monthly=5000, rollover=True, maximum=15000),
            ),
        ]
    )


plan_catalog = build_default_catalog()


def get_plan_catalog() -> PlanCatalog:
    """Dependency accessor for the process-wide catalog."""
    return plan_catalog
