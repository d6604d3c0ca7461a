"""
Shared fixtures for the demo API tests.

Tokens are signed with a throwaway RSA key. The matching JWKS is served
by patching ``fetch_jwks`` or by the app's MockTransport-backed HTTP
client, so no test talks to B2C.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, patch

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jwt.algorithms import RSAAlgorithm

from webapi.app.auth.bearer import reset_jwks_cache
from webapi.app.config import get_settings
from webapi.app.main import create_app


TEST_KID = "test-key-id-2024"
TEST_CLIENT_ID = "test-client-id"
TEST_TENANT_ID = "test-tenant-id"
TEST_INSTANCE = "https://contoso.b2clogin.com"
TEST_ISSUER = f"{TEST_INSTANCE}/{TEST_TENANT_ID}/v2.0/"
TEST_API_KEY = "test-api-key-0123456789"
TEST_JWKS_URI = f"{TEST_INSTANCE}/contoso.onmicrosoft.com/B2C_1_susi/discovery/v2.0/keys"


def generate_test_keys():
    """Generate RSA key pair for testing"""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return private_pem.decode(), private_key.public_key()


TEST_PRIVATE_KEY, TEST_PUBLIC_KEY = generate_test_keys()


def create_mock_jwks(kid: str = TEST_KID) -> Dict[str, Any]:
    key = RSAAlgorithm.to_jwk(TEST_PUBLIC_KEY, as_dict=True)
    key["kid"] = kid
    key["use"] = "sig"
    return {"keys": [key]}


def create_token(
    scp: Optional[str] = "access_as_user",
    kid: str = TEST_KID,
    exp_delta_minutes: int = 60,
    **overrides: Any,
) -> str:
    """
    Create a B2C-style token signed with the test private key.

    Keyword overrides replace or add claims; pass ``None`` to drop one.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "iss": TEST_ISSUER,
        "sub": "user-object-id",
        "aud": TEST_CLIENT_ID,
        "exp": now + timedelta(minutes=exp_delta_minutes),
        "nbf": now - timedelta(minutes=1),
        "iat": now - timedelta(minutes=1),
        "name": "Jane Doe",
        "emails": ["jane@example.com"],
        "tfp": "B2C_1_susi",
        "scp": scp,
    }
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}

    return jwt.encode(payload, TEST_PRIVATE_KEY, algorithm="RS256", headers={"kid": kid})


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def jwks_transport() -> httpx.MockTransport:
    """Transport answering the policy keys endpoint with the test JWKS."""

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TEST_JWKS_URI:
            return httpx.Response(200, json=create_mock_jwks())
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def clean_jwks_cache():
    reset_jwks_cache()
    yield
    reset_jwks_cache()


@pytest.fixture
def mock_jwks():
    """Patch JWKS retrieval with the test key set."""
    with patch(
        "webapi.app.auth.bearer.fetch_jwks",
        new=AsyncMock(return_value=create_mock_jwks()),
    ) as mocked:
        yield mocked


@pytest.fixture
def make_client(monkeypatch):
    """
    Build a TestClient after applying environment settings.

    Values of ``None`` remove the variable.
    """

    def _make(**env: Optional[str]) -> TestClient:
        values: Dict[str, Optional[str]] = {
            "API_KEY": TEST_API_KEY,
            "AZURE_AD__INSTANCE": TEST_INSTANCE,
            "AZURE_AD__DOMAIN": "contoso.onmicrosoft.com",
            "AZURE_AD__TENANT_ID": TEST_TENANT_ID,
            "AZURE_AD__CLIENT_ID": TEST_CLIENT_ID,
            "AZURE_AD__SIGN_IN_POLICY": "B2C_1_susi",
            "AZURE_AD__SCOPES": "access_as_user",
            "DOWNSTREAM_API__BASE_URL": "http://weather.test",
            "DOWNSTREAM_API__SCOPES": "https://contoso.onmicrosoft.com/api/access_as_user",
            "ENVIRONMENT_NAME": "Development",
            "APPLICATION_NAME": "webapi-tests",
            "SESSION_SECRET": "test-session-secret-0123456789",
        }
        values.update(env)
        for name, value in values.items():
            if value is None:
                monkeypatch.delenv(name, raising=False)
            else:
                monkeypatch.setenv(name, value)

        get_settings.cache_clear()
        app = create_app()
        app.state.http_client = httpx.AsyncClient(transport=jwks_transport())
        return TestClient(app)

    yield _make
    get_settings.cache_clear()
