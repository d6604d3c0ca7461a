"""
Tests for password grants and Graph token acquisition.
"""

from unittest.mock import Mock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from connector.app.auth.tokens import TokenAcquisitionError, TokenClient
from connector.app.config import Settings


def make_settings(**overrides) -> Settings:
    values = dict(
        AZURE_AD={
            "TENANT_ID": "tenant-guid",
            "TENANT_NAME": "contoso",
            "CLIENT_ID": "client-guid",
            "CLIENT_CREDENTIALS": [
                {"SOURCE_TYPE": "KeyVault"},
                {"SOURCE_TYPE": "ClientSecret", "CLIENT_SECRET": "from-credentials"},
            ],
        },
    )
    values.update(overrides)
    return Settings(**values)


# ============================================================================
# Password grant: raw token endpoint
# ============================================================================

@pytest.mark.asyncio
async def test_token_endpoint_form_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "abc", "token_type": "Bearer"})

    client = TokenClient(make_settings(), httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    result = await client.password_grant("jane@example.com", "pw")

    assert result.ok is True
    assert result.body["access_token"] == "abc"
    assert str(seen[0].url) == "https://contoso.ciamlogin.com/tenant-guid/oauth2/token"

    form = parse_qs(seen[0].content.decode())
    assert form == {
        "resource": ["https://graph.microsoft.com"],
        "client_id": ["client-guid"],
        "grant_type": ["password"],
        "username": ["jane@example.com"],
        "password": ["pw"],
        "nca": ["1"],
    }


@pytest.mark.asyncio
async def test_token_endpoint_rejection():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "AADSTS50126"})

    client = TokenClient(make_settings(), httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    result = await client.password_grant("jane@example.com", "bad")

    assert result.ok is False
    assert result.status_code == 400
    assert result.body["error"] == "invalid_grant"


# ============================================================================
# Password grant: MSAL
# ============================================================================

@pytest.mark.asyncio
async def test_msal_password_flow():
    msal_app = Mock()
    msal_app.acquire_token_by_username_password.return_value = {"access_token": "msal-token"}

    client = TokenClient(make_settings(ROPC_FLOW="msal"), Mock(spec=httpx.AsyncClient))

    with patch("connector.app.auth.tokens._get_public_app", return_value=msal_app):
        result = await client.password_grant("jane@example.com", "pw")

    assert result.ok is True
    assert result.body["access_token"] == "msal-token"
    msal_app.acquire_token_by_username_password.assert_called_once_with(
        "jane@example.com", "pw", scopes=["User.Read"]
    )


@pytest.mark.asyncio
async def test_msal_password_flow_rejection():
    msal_app = Mock()
    msal_app.acquire_token_by_username_password.return_value = {"error": "invalid_grant"}

    client = TokenClient(make_settings(ROPC_FLOW="msal"), Mock(spec=httpx.AsyncClient))

    with patch("connector.app.auth.tokens._get_public_app", return_value=msal_app):
        result = await client.password_grant("jane@example.com", "bad")

    assert result.ok is False


# ============================================================================
# Graph token (client credentials)
# ============================================================================

@pytest.mark.asyncio
async def test_graph_token_uses_first_client_secret_credential():
    msal_app = Mock()
    msal_app.acquire_token_for_client.return_value = {"access_token": "graph-token"}

    client = TokenClient(make_settings(), Mock(spec=httpx.AsyncClient))

    with patch("connector.app.auth.tokens._get_confidential_app", return_value=msal_app) as factory:
        token = await client.acquire_graph_token()

    assert token == "graph-token"
    factory.assert_called_once_with(
        "client-guid",
        "https://login.microsoftonline.com/tenant-guid",
        "from-credentials",
    )
    msal_app.acquire_token_for_client.assert_called_once_with(
        scopes=["https://graph.microsoft.com/.default"]
    )


@pytest.mark.asyncio
async def test_graph_token_leaves_caching_to_client_credentials_call():
    msal_app = Mock()
    msal_app.acquire_token_for_client.return_value = {"access_token": "graph-token"}

    client = TokenClient(make_settings(), Mock(spec=httpx.AsyncClient))

    with patch("connector.app.auth.tokens._get_confidential_app", return_value=msal_app):
        assert await client.acquire_graph_token() == "graph-token"
        assert await client.acquire_graph_token() == "graph-token"

    assert msal_app.acquire_token_for_client.call_count == 2
    msal_app.acquire_token_silent.assert_not_called()


@pytest.mark.asyncio
async def test_graph_token_error_raises():
    msal_app = Mock()
    msal_app.acquire_token_for_client.return_value = {
        "error": "invalid_client",
        "error_description": "AADSTS7000215: Invalid client secret provided.",
    }

    client = TokenClient(make_settings(), Mock(spec=httpx.AsyncClient))

    with patch("connector.app.auth.tokens._get_confidential_app", return_value=msal_app):
        with pytest.raises(TokenAcquisitionError, match="AADSTS7000215"):
            await client.acquire_graph_token()


@pytest.mark.asyncio
async def test_graph_token_without_secret_raises():
    settings = make_settings(AZURE_AD={"TENANT_ID": "t", "CLIENT_ID": "c"})
    client = TokenClient(settings, Mock(spec=httpx.AsyncClient))

    with pytest.raises(TokenAcquisitionError, match="No client secret"):
        await client.acquire_graph_token()


def test_client_secret_takes_precedence_over_credentials():
    settings = make_settings()
    settings.AZURE_AD.CLIENT_SECRET = "direct"

    assert settings.AZURE_AD.client_secret == "direct"
