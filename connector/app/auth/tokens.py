"""
Token acquisition against the Entra External ID tenant.

Two concerns live here:
- Resource owner password credentials (ROPC) for the ``auth`` method, either
  as a raw form POST to the CIAM token endpoint or through MSAL.
- App-only Microsoft Graph tokens via the MSAL client credentials flow.

MSAL is synchronous, so its calls run in a worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List

import httpx
import msal
from fastapi import Depends, HTTPException, Request, status

from connector.app.config import Settings, get_settings


logger = logging.getLogger(__name__)


class TokenAcquisitionError(Exception):
    """The identity platform did not return an access token."""


@dataclass
class PasswordGrantResult:
    """Outcome of a password grant; ``body`` is the endpoint's JSON."""

    ok: bool
    status_code: int
    body: Dict[str, Any]


# =============================================================================
# MSAL Applications
# =============================================================================

@lru_cache(maxsize=8)
def _get_confidential_app(
    client_id: str,
    authority: str,
    client_secret: str,
) -> msal.ConfidentialClientApplication:
    return msal.ConfidentialClientApplication(
        client_id,
        authority=authority,
        client_credential=client_secret,
    )


@lru_cache(maxsize=8)
def _get_public_app(client_id: str, authority: str) -> msal.PublicClientApplication:
    return msal.PublicClientApplication(client_id, authority=authority)


def _describe_msal_error(result: Dict[str, Any]) -> str:
    return result.get("error_description") or result.get("error") or "no access_token in response"


# =============================================================================
# Token Client
# =============================================================================

class TokenClient:
    """
    Exchanges credentials for tokens on behalf of the connector.

    Args:
        settings: Application settings (tenant, client, Graph scopes)
        http_client: Shared httpx.AsyncClient for the raw token endpoint
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    async def password_grant(self, email: str, password: str) -> PasswordGrantResult:
        """
        Validate a user's email and password.

        The flow is chosen by ROPC_FLOW: ``token_endpoint`` posts the legacy
        form body to ``{tenant}.ciamlogin.com``; ``msal`` uses
        PublicClientApplication.acquire_token_by_username_password.
        """
        if self.settings.ROPC_FLOW == "msal":
            return await self._password_grant_msal(email, password)
        return await self._password_grant_token_endpoint(email, password)

    async def _password_grant_token_endpoint(self, email: str, password: str) -> PasswordGrantResult:
        azure_ad = self.settings.AZURE_AD
        payload = {
            "resource": self.settings.GRAPH.RESOURCE,
            "client_id": azure_ad.CLIENT_ID,
            "grant_type": "password",
            "username": email,
            "password": password,
            "nca": "1",
        }

        response = await self.http_client.post(
            azure_ad.ciam_token_endpoint,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
        )

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if not response.is_success:
            logger.warning(
                "Password grant rejected by token endpoint",
                extra={"status_code": response.status_code, "error": body.get("error")},
            )

        return PasswordGrantResult(ok=response.is_success, status_code=response.status_code, body=body)

    async def _password_grant_msal(self, email: str, password: str) -> PasswordGrantResult:
        azure_ad = self.settings.AZURE_AD
        app = _get_public_app(azure_ad.CLIENT_ID, azure_ad.authority)

        result = await asyncio.to_thread(
            app.acquire_token_by_username_password,
            email,
            password,
            scopes=self.settings.GRAPH.ROPC_SCOPES,
        )

        if "access_token" in result:
            return PasswordGrantResult(ok=True, status_code=200, body=result)

        logger.warning(
            "Password grant rejected by MSAL",
            extra={"error": result.get("error")},
        )
        return PasswordGrantResult(ok=False, status_code=400, body=result)

    async def acquire_graph_token(self) -> str:
        """
        Acquire an app-only Graph token with the client credentials flow.

        Returns:
            Access token string

        Raises:
            TokenAcquisitionError: If no client secret is configured or the
                identity platform returns an error
        """
        azure_ad = self.settings.AZURE_AD
        client_secret = azure_ad.client_secret
        if not client_secret:
            raise TokenAcquisitionError("No client secret configured for the Graph client credentials flow")

        app = _get_confidential_app(azure_ad.CLIENT_ID, azure_ad.authority, client_secret)
        scopes: List[str] = self.settings.GRAPH.SCOPES

        # MSAL serves a cached token here until it nears expiry
        result: Dict[str, Any] = await asyncio.to_thread(app.acquire_token_for_client, scopes=scopes)

        if "access_token" not in result:
            raise TokenAcquisitionError(
                f"Failed to acquire Graph token: {_describe_msal_error(result)}"
            )
        return result["access_token"]


# =============================================================================
# Dependencies
# =============================================================================

def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency returning the shared outbound HTTP client from app state.

    Raises:
        HTTPException: 503 if the client was not created at startup
    """
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="HTTP client not available",
        )
    return client


def get_token_client(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> TokenClient:
    return TokenClient(settings, http_client)
