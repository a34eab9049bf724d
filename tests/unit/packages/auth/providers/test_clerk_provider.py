"""
Unit tests for ClerkProvider.

Tokens are signed with a throwaway RSA key; the JWKS and Backend API
endpoints are served by an httpx.MockTransport.
"""

import json
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from common.core.config import settings
from common.core.exceptions import AuthenticationError
from packages.auth.providers.clerk_provider import ClerkProvider
from packages.auth.providers.models import SSOProvider

ISSUER = "https://clerk.example.test"
FRONTEND = "http://localhost:3000"


def _generate_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def signing_key():
    return _generate_key()


@pytest.fixture(scope="module")
def other_key():
    return _generate_key()


@pytest.fixture
def clerk_settings(monkeypatch):
    monkeypatch.setattr(settings, "clerk_issuer", ISSUER)
    monkeypatch.setattr(settings, "clerk_jwks_url", None)
    monkeypatch.setattr(settings, "clerk_authorized_parties", [FRONTEND])
    monkeypatch.setattr(settings, "clerk_secret_key", "")
    monkeypatch.setattr(settings, "clerk_jwks_min_refresh_seconds", 60.0)


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def transport(signing_key, requests_seen):
    jwk = json.loads(RSAAlgorithm.to_jwk(signing_key.public_key()))
    jwk["kid"] = "kid_1"
    jwk["use"] = "sig"

    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        if request.url.path == "/.well-known/jwks.json":
            return httpx.Response(200, json={"keys": [jwk]})
        if request.url.path == "/v1/users/user_1":
            return httpx.Response(
                200,
                json={
                    "id": "user_1",
                    "primary_email_address_id": "idn_2",
                    "email_addresses": [
                        {"id": "idn_1", "email_address": "old@example.com"},
                        {"id": "idn_2", "email_address": "primary@example.com"},
                    ],
                },
            )
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def provider(clerk_settings, transport):
    return ClerkProvider(transport=transport)


def _token(key, kid="kid_1", **overrides):
    now = int(time.time())
    claims = {
        "sub": "user_1",
        "iss": ISSUER,
        "azp": FRONTEND,
        "iat": now,
        "nbf": now,
        "exp": now + 60,
    }
    claims.update(overrides)
    return jwt.encode(claims, key, algorithm="RS256", headers={"kid": kid})


class TestClerkProvider:
    def test_requires_issuer(self, monkeypatch):
        monkeypatch.setattr(settings, "clerk_issuer", "")
        with pytest.raises(ValueError):
            ClerkProvider()

    def test_provider_name(self, provider):
        assert provider.get_provider_name() == SSOProvider.CLERK

    async def test_valid_token(self, provider, signing_key):
        user_info = await provider.get_user_info(
            _token(signing_key, email="user@example.com")
        )

        assert user_info.provider_user_id == "user_1"
        assert user_info.email == "user@example.com"

    async def test_jwks_is_cached_between_tokens(
        self, provider, signing_key, requests_seen
    ):
        await provider.get_user_info(_token(signing_key))
        await provider.get_user_info(_token(signing_key))

        assert len(requests_seen) == 1

    async def test_expired_token(self, provider, signing_key):
        past = int(time.time()) - 120
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_user_info(
                _token(signing_key, iat=past - 60, nbf=past - 60, exp=past)
            )
        assert exc_info.value.detail == "Token has expired"

    async def test_wrong_issuer(self, provider, signing_key):
        with pytest.raises(AuthenticationError):
            await provider.get_user_info(
                _token(signing_key, iss="https://evil.example.test")
            )

    async def test_unauthorized_party(self, provider, signing_key):
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_user_info(
                _token(signing_key, azp="https://evil.example.test")
            )
        assert "unauthorized party" in exc_info.value.detail

    async def test_signature_from_other_key(self, provider, other_key):
        with pytest.raises(AuthenticationError):
            await provider.get_user_info(_token(other_key))

    async def test_unknown_kid_refreshes_once(
        self, provider, signing_key, requests_seen
    ):
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_user_info(_token(signing_key, kid="kid_unknown"))

        assert "kid_unknown" in exc_info.value.detail
        assert len(requests_seen) == 1

    async def test_unknown_kids_do_not_refetch_within_interval(
        self, provider, signing_key, requests_seen
    ):
        await provider.get_user_info(_token(signing_key))
        for i in range(5):
            with pytest.raises(AuthenticationError):
                await provider.get_user_info(_token(signing_key, kid=f"kid_bogus_{i}"))

        assert len(requests_seen) == 1

    async def test_unknown_kid_refetches_after_interval(
        self, clerk_settings, transport, signing_key, requests_seen, monkeypatch
    ):
        monkeypatch.setattr(settings, "clerk_jwks_min_refresh_seconds", 0)
        provider = ClerkProvider(transport=transport)

        await provider.get_user_info(_token(signing_key))
        with pytest.raises(AuthenticationError):
            await provider.get_user_info(_token(signing_key, kid="kid_rotated"))

        assert len(requests_seen) == 2

    async def test_malformed_token(self, provider):
        with pytest.raises(AuthenticationError):
            await provider.get_user_info("not-a-jwt")

    async def test_jwks_fetch_failure(self, clerk_settings, signing_key):
        failing = httpx.MockTransport(lambda request: httpx.Response(503))
        provider = ClerkProvider(transport=failing)

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_user_info(_token(signing_key))
        assert exc_info.value.detail == "Unable to verify token"

    async def test_user_email_without_secret_key(self, provider):
        assert await provider.get_user_email("user_1") is None

    async def test_user_email_from_backend_api(
        self, provider, monkeypatch, requests_seen
    ):
        monkeypatch.setattr(settings, "clerk_secret_key", "sk_test_123")
        monkeypatch.setattr(settings, "clerk_api_url", "https://api.clerk.test/v1")

        email = await provider.get_user_email("user_1")

        assert email == "primary@example.com"
        assert requests_seen[-1].headers["Authorization"] == "Bearer sk_test_123"

    async def test_user_email_lookup_failure(self, provider, monkeypatch):
        monkeypatch.setattr(settings, "clerk_secret_key", "sk_test_123")
        monkeypatch.setattr(settings, "clerk_api_url", "https://api.clerk.test/v1")

        assert await provider.get_user_email("user_missing") is None
