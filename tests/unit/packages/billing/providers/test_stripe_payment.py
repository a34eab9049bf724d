"""Tests for the Stripe payment provider with a mocked StripeClient."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe

from common.core.exceptions import UpstreamError
from packages.billing.providers.payment.stripe_payment import StripePaymentProvider


@pytest.fixture
def stripe_client():
    client = MagicMock()
    client.customers.create_async = AsyncMock(
        return_value=SimpleNamespace(id="cus_abc")
    )
    client.customers.retrieve_async = AsyncMock(
        return_value=SimpleNamespace(id="cus_abc", email="owner@example.com")
    )
    client.checkout.sessions.create_async = AsyncMock(
        return_value=SimpleNamespace(
            id="cs_abc", url="https://checkout.stripe.com/c/pay/cs_abc"
        )
    )
    client.subscriptions.update_async = AsyncMock()
    client.balance.retrieve_async = AsyncMock()
    return client


@pytest.fixture
def provider(stripe_client):
    return StripePaymentProvider(client=stripe_client)


async def test_create_customer_tags_user_key(provider, stripe_client):
    customer_id = await provider.create_customer("key-1", email="a@example.com")

    assert customer_id == "cus_abc"
    stripe_client.customers.create_async.assert_awaited_once_with(
        params={"metadata": {"user_key": "key-1"}, "email": "a@example.com"}
    )


async def test_create_customer_failure(provider, stripe_client):
    stripe_client.customers.create_async.side_effect = stripe.StripeError("down")

    with pytest.raises(UpstreamError):
        await provider.create_customer("key-1")


async def test_checkout_session_carries_user_key(provider, stripe_client):
    url = await provider.create_checkout_session(
        user_key="key-1",
        price_id="price_std",
        plan_id="standard",
        success_url="http://localhost/ok",
        cancel_url="http://localhost/cancel",
        customer_ref="cus_abc",
    )

    assert url == "https://checkout.stripe.com/c/pay/cs_abc"
    params = stripe_client.checkout.sessions.create_async.call_args.kwargs["params"]
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_std", "quantity": 1}]
    assert params["client_reference_id"] == "key-1"
    assert params["customer"] == "cus_abc"
    assert params["subscription_data"]["metadata"] == {
        "user_key": "key-1",
        "plan_id": "standard",
    }


async def test_checkout_session_without_url(provider, stripe_client):
    stripe_client.checkout.sessions.create_async.return_value = SimpleNamespace(
        id="cs_abc", url=None
    )

    with pytest.raises(UpstreamError):
        await provider.create_checkout_session(
            "key-1", "price_std", "standard", "http://a", "http://b"
        )


async def test_retrieve_subscription_parses_items(provider, stripe_client):
    raw = MagicMock()
    raw.to_dict.return_value = {
        "id": "sub_1",
        "customer": "cus_abc",
        "items": {
            "data": [
                {
                    "price": {"id": "price_std", "currency": "usd", "unit_amount": 1500},
                    "current_period_start": 1767225600,
                    "current_period_end": 1769904000,
                }
            ]
        },
        "metadata": {"user_key": "key-1"},
    }
    stripe_client.subscriptions.retrieve_async = AsyncMock(return_value=raw)

    subscription = await provider.retrieve_subscription("sub_1")

    assert subscription.price.id == "price_std"
    assert subscription.metadata.user_key == "key-1"
    assert subscription.period_end.year == 2026


async def test_customer_email_lookup_failure_returns_none(provider, stripe_client):
    stripe_client.customers.retrieve_async.side_effect = stripe.StripeError("gone")

    assert await provider.retrieve_customer_email("cus_abc") is None


async def test_customer_email(provider):
    assert await provider.retrieve_customer_email("cus_abc") == "owner@example.com"


async def test_cancel_at_period_end(provider, stripe_client):
    await provider.cancel_at_period_end("sub_1")

    stripe_client.subscriptions.update_async.assert_awaited_once_with(
        "sub_1", params={"cancel_at_period_end": True}
    )


async def test_cancel_failure_raises(provider, stripe_client):
    stripe_client.subscriptions.update_async.side_effect = stripe.StripeError("no")

    with pytest.raises(UpstreamError):
        await provider.cancel_at_period_end("sub_1")


async def test_health_check(provider, stripe_client):
    assert await provider.health_check() is True

    stripe_client.balance.retrieve_async.side_effect = RuntimeError("down")
    assert await provider.health_check() is False
