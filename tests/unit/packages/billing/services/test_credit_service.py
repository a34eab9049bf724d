"""
Unit tests for CreditService.

Database interactions are NOT mocked.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.exceptions import ValidationError
from common.db.base import Base
from packages.billing.exceptions import (
    InsufficientCreditsError,
    InvalidOperationError,
    InvalidPlanError,
    SubscriptionNotFoundError,
)
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.credits import CreditOperationRequest
from packages.billing.models.domain.enums import AuditAction, CreditOperation
from packages.billing.plans import get_plan_catalog
from packages.billing.repositories.audit_log_repository import AuditLogRepository
from packages.billing.repositories.credit_ledger_repository import (
    CreditLedgerRepository,
)
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.credit_service import CreditService


@pytest.fixture
def credit_service():
    return CreditService()


@pytest.fixture
def subscription_repo():
    return SubscriptionRepository()


@pytest.fixture
def ledger_repo():
    return CreditLedgerRepository()


@pytest.fixture
def audit_repo():
    return AuditLogRepository()


def _request(subscription_id: int, operation: str, amount: int):
    return CreditOperationRequest(
        subscription_id=subscription_id, operation=operation, amount=amount
    )


class TestApplyOperation:
    async def test_use_debits_and_records_ledger(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=1000)

        balance = await credit_service.apply_operation(
            CreditOperationRequest(
                subscription_id=subscription.id,
                operation="USE",
                amount=10,
                description="Credit usage for AI_OPERATION",
            )
        )

        assert balance.credits_remaining == 990
        assert balance.credits_limit == 3000
        assert balance.plan_id == "standard"

        entries = await ledger_repo.list_for_subscription(subscription.id)
        assert len(entries) == 1
        assert entries[0].operation == CreditOperation.USE
        assert entries[0].amount == 10
        assert entries[0].balance_after == 990
        assert entries[0].description == "Credit usage for AI_OPERATION"

    async def test_use_rejects_overdraw(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=1000)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await credit_service.apply_operation(
                _request(subscription.id, "USE", 1001)
            )

        assert exc_info.value.requires_upgrade is False
        stored = await subscription_repo.get(subscription.id)
        assert stored.credits_remaining == 1000
        assert await ledger_repo.count_for_subscription(subscription.id) == 0

    async def test_use_exact_balance(self, credit_service, make_subscription):
        subscription = await make_subscription(credits_remaining=25)

        balance = await credit_service.apply_operation(
            _request(subscription.id, "USE", 25)
        )

        assert balance.credits_remaining == 0

    async def test_use_on_free_plan_requires_upgrade(
        self, credit_service, free_subscription
    ):
        with pytest.raises(InsufficientCreditsError) as exc_info:
            await credit_service.apply_operation(
                _request(free_subscription.id, "USE", 1)
            )

        assert exc_info.value.requires_upgrade is True

    async def test_reset_sets_monthly_allowance(
        self, credit_service, make_subscription, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=2999)

        balance = await credit_service.apply_operation(
            _request(subscription.id, "RESET", 0)
        )

        assert balance.credits_remaining == 1000
        assert balance.credits_limit == 3000
        entries = await ledger_repo.list_for_subscription(subscription.id)
        assert [(e.operation, e.amount, e.balance_after) for e in entries] == [
            (CreditOperation.RESET, 1000, 1000)
        ]

    async def test_bonus_is_capped_at_limit(
        self, credit_service, make_subscription, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=2900)

        balance = await credit_service.apply_operation(
            _request(subscription.id, "BONUS", 500)
        )

        assert balance.credits_remaining == 3000
        entries = await ledger_repo.list_for_subscription(subscription.id)
        assert entries[0].operation == CreditOperation.BONUS
        assert entries[0].amount == 500
        assert entries[0].balance_after == 3000

    async def test_bonus_below_cap(self, credit_service, make_subscription):
        subscription = await make_subscription(credits_remaining=100)

        balance = await credit_service.apply_operation(
            _request(subscription.id, "BONUS", 50)
        )

        assert balance.credits_remaining == 150

    async def test_invalid_operation(self, credit_service, sample_subscription):
        with pytest.raises(InvalidOperationError) as exc_info:
            await credit_service.apply_operation(
                _request(sample_subscription.id, "REFUND", 10)
            )
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("operation", ["USE", "BONUS"])
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount(
        self, credit_service, sample_subscription, operation, amount
    ):
        with pytest.raises(ValidationError) as exc_info:
            await credit_service.apply_operation(
                _request(sample_subscription.id, operation, amount)
            )
        assert exc_info.value.detail == "Invalid credit amount"

    async def test_missing_subscription(self, credit_service):
        with pytest.raises(SubscriptionNotFoundError):
            await credit_service.apply_operation(_request(999999, "USE", 1))

    async def test_unknown_stored_plan_rolls_back(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(plan_id="legacy", credits_remaining=50)

        with pytest.raises(InvalidPlanError):
            await credit_service.apply_operation(_request(subscription.id, "USE", 5))

        stored = await subscription_repo.get(subscription.id)
        assert stored.credits_remaining == 50
        assert await ledger_repo.count_for_subscription(subscription.id) == 0

    async def test_audit_failure_does_not_fail_operation(
        self, make_subscription, ledger_repo
    ):
        audit_repo = AuditLogRepository()
        audit_repo.record = AsyncMock(side_effect=RuntimeError("audit down"))
        credit_service = CreditService(audit_repo=audit_repo)
        subscription = await make_subscription(credits_remaining=100)

        balance = await credit_service.apply_operation(
            _request(subscription.id, "USE", 40)
        )

        assert balance.credits_remaining == 60
        assert await ledger_repo.count_for_subscription(subscription.id) == 1
        audit_repo.record.assert_awaited_once()

    async def test_operation_writes_audit_entry(
        self, credit_service, make_subscription, audit_repo
    ):
        subscription = await make_subscription(credits_remaining=100)

        await credit_service.apply_operation(_request(subscription.id, "USE", 40))

        entries = await audit_repo.list_for_subscription(subscription.id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.CREDIT_OPERATION
        assert entries[0].details["previous_credits"] == 100
        assert entries[0].details["new_credits"] == 60


class TestBalanceAndHistory:
    async def test_get_balance(self, credit_service, sample_subscription, test_user):
        balance = await credit_service.get_balance(test_user.user_key)

        assert balance.credits_remaining == sample_subscription.credits_remaining
        assert balance.plan_id == "standard"

    async def test_get_balance_without_subscription(self, credit_service):
        with pytest.raises(SubscriptionNotFoundError):
            await credit_service.get_balance("missing")

    async def test_history_newest_first(
        self, credit_service, sample_subscription, test_user
    ):
        for amount in (1, 2, 3):
            await credit_service.apply_operation(
                _request(sample_subscription.id, "USE", amount)
            )

        entries = await credit_service.get_history(test_user.user_key, limit=2)

        assert [e.amount for e in entries] == [3, 2]


class TestBillingDrivenChanges:
    async def test_allocate_initial(
        self, credit_service, free_subscription, subscription_repo, ledger_repo
    ):
        standard = get_plan_catalog().get("standard")

        adjustment = await credit_service.allocate_initial(
            free_subscription.id, standard
        )

        assert adjustment.credits_remaining == 1000
        assert adjustment.credits_added == 1000
        stored = await subscription_repo.get(free_subscription.id)
        assert stored.plan_id == "standard"
        assert (stored.credits_remaining, stored.credits_limit) == (1000, 3000)
        assert stored.credits_reset_count == 0
        entries = await ledger_repo.list_for_subscription(free_subscription.id)
        assert [(e.operation, e.amount) for e in entries] == [
            (CreditOperation.RESET, 1000)
        ]

    async def test_plan_change_rolls_over(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=2500)
        enterprise = get_plan_catalog().get("enterprise")

        adjustment = await credit_service.apply_plan_change(subscription.id, enterprise)

        assert adjustment.applied is True
        assert adjustment.credits_remaining == 7500
        stored = await subscription_repo.get(subscription.id)
        assert stored.plan_id == "enterprise"
        assert stored.credits_limit == 15000
        entries = await ledger_repo.list_for_subscription(subscription.id)
        assert [(e.operation, e.amount, e.balance_after) for e in entries] == [
            (CreditOperation.BONUS, 5000, 7500)
        ]

    async def test_downgrade_caps_at_new_maximum(self, credit_service, make_subscription):
        subscription = await make_subscription(
            plan_id="enterprise", credits_remaining=7000, credits_limit=15000
        )
        standard = get_plan_catalog().get("standard")

        adjustment = await credit_service.apply_plan_change(subscription.id, standard)

        assert adjustment.credits_remaining == 3000
        assert adjustment.credits_limit == 3000

    async def test_plan_change_to_same_plan_is_noop(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=1200)
        standard = get_plan_catalog().get("standard")

        adjustment = await credit_service.apply_plan_change(subscription.id, standard)

        assert adjustment.applied is False
        stored = await subscription_repo.get(subscription.id)
        assert stored.credits_remaining == 1200
        assert await ledger_repo.count_for_subscription(subscription.id) == 0

    async def test_renewal_adds_monthly_and_counts(
        self, credit_service, make_subscription, subscription_repo
    ):
        subscription = await make_subscription(credits_remaining=1500)
        standard = get_plan_catalog().get("standard")
        period_end = datetime(2031, 1, 1, tzinfo=timezone.utc)

        adjustment = await credit_service.apply_renewal(
            subscription.id, standard, period_end, "in_001"
        )

        assert adjustment.credits_remaining == 2500
        assert adjustment.credits_added == 1000
        stored = await subscription_repo.get(subscription.id)
        assert stored.credits_reset_count == 1
        assert stored.last_invoice_ref == "in_001"
        assert stored.end_date.replace(tzinfo=None) == period_end.replace(tzinfo=None)

    async def test_renewal_same_invoice_is_noop(
        self, credit_service, make_subscription, subscription_repo, ledger_repo
    ):
        subscription = await make_subscription(credits_remaining=1500)
        standard = get_plan_catalog().get("standard")

        await credit_service.apply_renewal(subscription.id, standard, None, "in_001")
        again = await credit_service.apply_renewal(
            subscription.id, standard, None, "in_001"
        )

        assert again.applied is False
        stored = await subscription_repo.get(subscription.id)
        assert stored.credits_remaining == 2500
        assert stored.credits_reset_count == 1
        assert await ledger_repo.count_for_subscription(subscription.id) == 1


@pytest_asyncio.fixture
async def file_session_factory(tmp_path, monkeypatch):
    """Separate connections over a file database, so writers really contend."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credits.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)
    yield factory
    await engine.dispose()


class TestConcurrentSpend:
    async def test_only_one_spend_of_last_credits_succeeds(
        self, file_session_factory, credit_service, subscription_repo, ledger_repo
    ):
        now = datetime.now(timezone.utc)
        async with file_session_factory() as session:
            entity = SubscriptionEntity(
                user_key="concurrent-user",
                plan_id="standard",
                billing_interval="MONTHLY",
                amount=Decimal("15"),
                currency="USD",
                start_date=now,
                end_date=now + timedelta(days=30),
                credits_remaining=10,
                credits_limit=3000,
                credits_reset_count=0,
            )
            session.add(entity)
            await session.commit()
            subscription_id = entity.id

        results = await asyncio.gather(
            credit_service.apply_operation(_request(subscription_id, "USE", 10)),
            credit_service.apply_operation(_request(subscription_id, "USE", 10)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientCreditsError)

        stored = await subscription_repo.get(subscription_id)
        assert stored.credits_remaining == 0
        assert await ledger_repo.count_for_subscription(subscription_id) == 1
