"""
Microsoft Graph user-management client.

Thin REST wrapper over httpx for the handful of Graph v1.0 calls the
connector makes: reading and creating users and managing their email and
phone authentication methods.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class GraphError(Exception):
    """Non-success response from Microsoft Graph."""

    def __init__(self, status_code: int, code: Optional[str], message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"Graph request failed ({status_code} {code}): {message}")


def _raise_for_graph_error(response: httpx.Response) -> None:
    if response.is_success:
        return

    code = None
    message = response.text or response.reason_phrase
    try:
        error = response.json().get("error", {})
        code = error.get("code")
        message = error.get("message") or message
    except ValueError:
        pass

    raise GraphError(response.status_code, code, message)


# =============================================================================
# Request Builders
# =============================================================================

def build_user_body(
    display_name: Optional[str],
    email: str,
    password: str,
    issuer: str,
    given_name: Optional[str] = None,
    surname: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the POST /users body for a local (email + password) account.

    Args:
        display_name: Display name shown in the directory
        email: Sign-in email, stored as the emailAddress identity
        password: Initial password, not forced to change
        issuer: Tenant domain that issues the identity
        given_name: Optional first name
        surname: Optional last name

    Returns:
        JSON-serializable user object
    """
    body: Dict[str, Any] = {
        "displayName": display_name,
        "identities": [
            {
                "signInType": "emailAddress",
                "issuer": issuer,
                "issuerAssignedId": email,
            }
        ],
        "passwordProfile": {
            "password": password,
            "forceChangePasswordNextSignIn": False,
        },
        "passwordPolicies": "DisablePasswordExpiration",
    }
    if given_name:
        body["givenName"] = given_name
    if surname:
        body["surname"] = surname
    return body


# =============================================================================
# Client
# =============================================================================

class GraphClient:
    """
    Graph REST calls authorized with an app-only access token.

    Args:
        access_token: Bearer token for https://graph.microsoft.com
        http_client: Shared httpx.AsyncClient
        base_url: Graph version root, e.g. https://graph.microsoft.com/v1.0
    """

    def __init__(self, access_token: str, http_client: httpx.AsyncClient, base_url: str):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        response = await self.http_client.request(method, url, headers=self.headers, json=json)

        logger.debug(
            "Graph request completed",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        _raise_for_graph_error(response)

        if not response.content:
            return {}
        return response.json()

    async def get_user(self, object_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{object_id}")

    async def create_user(self, user_body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/users", json=user_body)

    async def add_email_method(self, object_id: str, email: str) -> Dict[str, Any]:
        """Register ``email`` as the user's email authentication method."""
        return await self._request(
            "POST",
            f"/users/{object_id}/authentication/emailMethods",
            json={"emailAddress": email},
        )

    async def list_phone_methods(self, object_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/users/{object_id}/authentication/phoneMethods")
        return data.get("value", [])

    async def add_phone_method(
        self,
        object_id: str,
        phone_number: str,
        phone_type: str = "mobile",
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/users/{object_id}/authentication/phoneMethods",
            json={"phoneNumber": phone_number, "phoneType": phone_type},
        )
