"""
Unit tests for AccessGuard.
"""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock

from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.access_guard import (
    SUBSCRIPTION_EXPIRED_MESSAGE,
    UPGRADE_REQUIRED_MESSAGE,
    AccessGuard,
)


@pytest.fixture
def access_guard():
    return AccessGuard()


class TestAccessGuard:
    async def test_unauthenticated(self, access_guard):
        result = await access_guard.check_credits(None, "AI_OPERATION", 1)

        assert result.has_credits is False
        assert result.error == "Unauthorized"

    async def test_no_subscription(self, access_guard, test_user):
        result = await access_guard.check_credits(test_user, "AI_OPERATION", 1)

        assert result.has_credits is False
        assert result.error == "No active subscription found"

    async def test_free_plan_requires_upgrade(
        self, access_guard, test_user, free_subscription
    ):
        result = await access_guard.check_credits(test_user, "AI_OPERATION", 1)

        assert result.has_credits is False
        assert result.requires_upgrade is True
        assert result.credits_remaining == 0
        assert result.error == UPGRADE_REQUIRED_MESSAGE

    async def test_enough_credits(self, access_guard, test_user, make_subscription):
        subscription = await make_subscription(credits_remaining=100)

        result = await access_guard.check_credits(test_user, "AI_OPERATION", 100)

        assert result.has_credits is True
        assert result.subscription_id == subscription.id
        assert result.credits_remaining == 100
        assert result.error is None

    async def test_insufficient_credits_on_paid_plan(
        self, access_guard, test_user, make_subscription
    ):
        await make_subscription(credits_remaining=5)

        result = await access_guard.check_credits(test_user, "AI_OPERATION", 6)

        assert result.has_credits is False
        assert result.requires_upgrade is False
        assert result.credits_remaining == 5
        assert result.error == "Insufficient credits"

    async def test_unknown_plan(self, access_guard, test_user, make_subscription):
        await make_subscription(plan_id="legacy")

        result = await access_guard.check_credits(test_user, "AI_OPERATION", 1)

        assert result.has_credits is False
        assert result.error == "Invalid subscription plan"

    async def test_repository_failure_denies(self, test_user):
        repo = SubscriptionRepository()
        repo.get_by_user_key = AsyncMock(side_effect=RuntimeError("db down"))

        result = await AccessGuard(subscription_repo=repo).check_credits(
            test_user, "AI_OPERATION", 1
        )

        assert result.has_credits is False
        assert result.error == "Failed to check credits"

    async def test_does_not_change_balance(
        self, access_guard, test_user, make_subscription
    ):
        subscription = await make_subscription(credits_remaining=100)

        await access_guard.check_credits(test_user, "AI_OPERATION", 50)

        stored = await SubscriptionRepository().get(subscription.id)
        assert stored.credits_remaining == 100

    async def test_cancelled_past_end_date_is_expired(
        self, access_guard, test_user, make_subscription
    ):
        now = datetime.now(timezone.utc)
        subscription = await make_subscription(
            cancelled=True,
            cancelled_at=now - timedelta(days=70),
            end_date=now - timedelta(days=40),
            credits_remaining=500,
        )

        result = await access_guard.check_credits(test_user, "AI_OPERATION", 100)

        assert result.has_credits is False
        assert result.requires_upgrade is True
        assert result.subscription_id == subscription.id
        assert result.error == SUBSCRIPTION_EXPIRED_MESSAGE

    async def test_cancelled_before_end_date_stays_usable(
        self, access_guard, test_user, make_subscription
    ):
        now = datetime.now(timezone.utc)
        await make_subscription(
            cancelled=True,
            cancelled_at=now,
            end_date=now + timedelta(days=10),
            credits_remaining=500,
        )

        result = await access_guard.check_credits(test_user, "AI_OPERATION", 100)

        assert result.has_credits is True
        assert result.credits_remaining == 500
