# Shared pytest configuration and fixtures for all test types
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.db.session import get_db
from common.db.base import Base
from packages.auth.dependencies import get_current_user
from packages.auth.identity import derive_user_key
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.auth.providers.models import SSOProvider
from packages.auth.services.sso_auth_service import SSOAuthService
from packages.billing.dependencies import (
    get_subscription_service,
    get_webhook_processor,
)
from packages.billing.models.database import (  # noqa: F401
    CreditLedgerEntity,
    ProcessedWebhookEventEntity,
    SubscriptionAuditLogEntity,
    SubscriptionEntity,
)
from packages.billing.models.domain.subscription import Subscription
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.webhooks.stripe_webhook import StripeWebhookProcessor
from packages.notifications.services.notification_service import (
    NotificationService,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_WEBHOOK_SECRET = "whsec_test_secret"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest.fixture
def test_user() -> AuthenticatedUser:
    """A verified Clerk user."""
    return AuthenticatedUser(
        user_id="user_test123",
        user_key=derive_user_key("user_test123"),
        email="test@example.com",
    )


@pytest.fixture
def mock_payment_provider():
    """Mocked Stripe payment provider."""
    provider = AsyncMock()
    provider.create_customer = AsyncMock(return_value="cus_new123")
    provider.create_checkout_session = AsyncMock(
        return_value="https://checkout.stripe.com/c/pay/cs_test123"
    )
    provider.retrieve_customer_email = AsyncMock(return_value=None)
    provider.cancel_at_period_end = AsyncMock(return_value=None)
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def mock_email_provider():
    """Mocked Resend email provider."""
    provider = AsyncMock()
    provider.send = AsyncMock(return_value="email_123")
    return provider


@pytest.fixture
def mock_sso_provider():
    """Mocked Clerk provider that never finds an email."""
    provider = AsyncMock()
    provider.get_user_email = AsyncMock(return_value=None)
    provider.get_provider_name = MagicMock(return_value=SSOProvider.CLERK)
    return provider


@pytest.fixture
def notification_service(mock_email_provider) -> NotificationService:
    return NotificationService(email_provider=mock_email_provider)


@pytest.fixture
def subscription_service(
    mock_payment_provider, notification_service, mock_sso_provider
) -> SubscriptionService:
    return SubscriptionService(
        payment_provider=mock_payment_provider,
        notification_service=notification_service,
        sso_auth_service=SSOAuthService(sso_provider=mock_sso_provider),
    )


@pytest.fixture
def webhook_processor(
    mock_payment_provider, notification_service
) -> StripeWebhookProcessor:
    return StripeWebhookProcessor(
        payment_provider=mock_payment_provider,
        notification_service=notification_service,
        webhook_secret=TEST_WEBHOOK_SECRET,
    )


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession, test_user, subscription_service, webhook_processor):
    """Create a test client."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_subscription_service] = lambda: subscription_service
    app.dependency_overrides[get_webhook_processor] = lambda: webhook_processor

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def anonymous_client(test_db: AsyncSession):
    """Client without an authenticated user override."""
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_subscription(test_db: AsyncSession, test_user):
    """Factory inserting a subscription row; defaults to a standard plan."""

    async def _make(**overrides) -> Subscription:
        now = datetime.now(timezone.utc)
        values = dict(
            user_key=test_user.user_key,
            email=test_user.email,
            plan_id="standard",
            billing_interval="MONTHLY",
            amount=Decimal("15"),
            currency="USD",
            start_date=now,
            end_date=now + timedelta(days=30),
            external_subscription_ref="sub_test123",
            external_customer_ref="cus_test123",
            cancelled=False,
            credits_remaining=1000,
            credits_limit=3000,
            credits_reset_count=0,
        )
        values.update(overrides)
        entity = SubscriptionEntity(**values)
        test_db.add(entity)
        await test_db.flush()
        await test_db.refresh(entity)
        return Subscription.model_validate(entity)

    return _make


@pytest_asyncio.fixture
async def sample_subscription(make_subscription) -> Subscription:
    """A standard-plan subscription for test_user."""
    return await make_subscription()


@pytest_asyncio.fixture
async def free_subscription(make_subscription) -> Subscription:
    """A free-plan subscription for test_user."""
    return await make_subscription(
        plan_id="free",
        amount=Decimal("0"),
        external_subscription_ref=None,
        external_customer_ref=None,
        credits_remaining=0,
        credits_limit=0,
    )


@pytest.fixture
def sign_stripe_payload():
    """Build a body and a valid stripe-signature header for it."""

    def _sign(event: dict, secret: str = TEST_WEBHOOK_SECRET, timestamp=None):
        body = json.dumps(event)
        timestamp = int(time.time()) if timestamp is None else timestamp
        signature = hmac.new(
            secret.encode("utf-8"),
            f"{timestamp}.{body}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return body, f"t={timestamp},v1={signature}"

    return _sign
