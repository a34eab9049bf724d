from decimal import Decimal

import pytest

from packages.billing.exceptions import InvalidPlanError
from packages.billing.models.domain.enums import BillingInterval, PlanId
from packages.billing.models.domain.plans import CreditPolicy, Plan
from packages.billing.plans import PlanCatalog, build_default_catalog


@pytest.fixture
def catalog() -> PlanCatalog:
    return build_default_catalog()


class TestPlanCatalog:
    def test_default_plans(self, catalog):
        free = catalog.get("free")
        standard = catalog.get("standard")
        enterprise = catalog.get("enterprise")

        assert (free.credits.monthly, free.credits.rollover, free.credits.maximum) == (
            0,
            False,
            0,
        )
        assert free.price == Decimal("0")
        assert free.stripe_price_id is None

        assert standard.credits == CreditPolicy(monthly=1000, rollover=True, maximum=3000)
        assert standard.price == Decimal("15")

        assert enterprise.credits == CreditPolicy(
            monthly=5000, rollover=True, maximum=15000
        )
        assert enterprise.price == Decimal("60")

    def test_lookup_by_enum(self, catalog):
        assert catalog.get(PlanId.STANDARD).id == PlanId.STANDARD

    def test_unknown_plan(self, catalog):
        assert catalog.find("platinum") is None
        with pytest.raises(InvalidPlanError):
            catalog.get("platinum")

    def test_lookup_by_price_id(self, catalog):
        standard = catalog.get("standard")
        assert catalog.get_by_price_id(standard.stripe_price_id) is standard

    def test_unknown_price_id(self, catalog):
        with pytest.raises(InvalidPlanError):
            catalog.get_by_price_id("price_unknown")
        with pytest.raises(InvalidPlanError):
            catalog.get_by_price_id(None)

    def test_to_info(self, catalog):
        info = {plan.id: plan for plan in catalog.to_info()}

        assert set(info) == {PlanId.FREE, PlanId.STANDARD, PlanId.ENTERPRISE}
        assert info[PlanId.ENTERPRISE].maximum_credits == 15000
        assert info[PlanId.STANDARD].rollover is True


class TestRenewalBalance:
    def _plan(self, rollover: bool) -> Plan:
        return Plan(
            id=PlanId.STANDARD,
            name="Standard",
            price=Decimal("15"),
            billing_interval=BillingInterval.MONTHLY,
            credits=CreditPolicy(monthly=1000, rollover=rollover, maximum=3000),
        )

    @pytest.mark.parametrize(
        "current, expected",
        [(0, 1000), (500, 1500), (2500, 3000), (3000, 3000)],
    )
    def test_rollover_caps_at_maximum(self, current, expected):
        assert self._plan(rollover=True).renewal_balance(current) == expected

    def test_without_rollover_resets(self):
        assert self._plan(rollover=False).renewal_balance(2999) == 1000

    def test_policy_rejects_maximum_below_monthly(self):
        with pytest.raises(ValueError):
            CreditPolicy(monthly=1000, rollover=True, maximum=10)
