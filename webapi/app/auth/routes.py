"""
Azure AD B2C sign-in for the browser-facing side of the demo API.

This module implements the OAuth 2.0 / OIDC authorization code flow with
PKCE against the configured sign-up/sign-in policy, keeping the signed-in
user and their access token in the session cookie.
"""

import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from jose import JWTError

from webapi.app.auth.bearer import verify_token
from webapi.app.config import Settings, get_settings
from webapi.app.dependencies import get_http_client


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)

SESSION_USER_KEY = "user"
SESSION_ACCESS_TOKEN_KEY = "access_token"

USER_CLAIMS = ("sub", "oid", "name", "given_name", "family_name", "emails", "tfp")


# =============================================================================
# PKCE Helper Functions
# =============================================================================

def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode("utf-8").rstrip("=")


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def _redirect_uri(request: Request, settings: Settings) -> str:
    return str(request.base_url).rstrip("/") + settings.AZURE_AD.CALLBACK_PATH


def _requested_scopes(settings: Settings) -> str:
    scopes = ["openid", "offline_access"]
    scopes.extend(settings.DOWNSTREAM_API.SCOPES.split())
    return " ".join(scopes)


# =============================================================================
# Login / Callback / Logout
# =============================================================================

@auth_router.get("/login", response_class=RedirectResponse)
async def login(request: Request, settings: Settings = Depends(get_settings)):
    """
    Start the B2C sign-in by redirecting to the policy's authorize endpoint.

    State, nonce and the PKCE verifier are kept in the session for the
    callback to check.
    """
    state = secrets.token_urlsafe(32)
    nonce = secrets.token_urlsafe(32)
    code_verifier = generate_code_verifier()

    request.session["oauth_state"] = state
    request.session["oauth_nonce"] = nonce
    request.session["code_verifier"] = code_verifier

    params = {
        "client_id": settings.AZURE_AD.CLIENT_ID,
        "response_type": "code",
        "redirect_uri": _redirect_uri(request, settings),
        "response_mode": "query",
        "scope": _requested_scopes(settings),
        "state": state,
        "nonce": nonce,
        "code_challenge": generate_code_challenge(code_verifier),
        "code_challenge_method": "S256",
    }

    return RedirectResponse(url=f"{settings.AZURE_AD.authorize_endpoint}?{urlencode(params)}", status_code=302)


@auth_router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from B2C"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    error: Optional[str] = Query(None, description="Error code if sign-in failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Complete the sign-in: check state, redeem the code, verify the ID token.

    Returns:
        302 to ``/`` with the user stored in the session

    Raises:
        HTTPException: 400 for B2C errors and bad or stale requests, 401 when
            the ID token does not verify, 502 when the code cannot be redeemed,
            503 when the signing keys cannot be fetched
    """
    if error:
        logger.warning(f"B2C returned an error: {error}", extra={"error_description": error_description})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Authentication failed: {error_description or error}",
        )

    if not code or not state:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters (code or state)",
        )

    expected_state = request.session.get("oauth_state")
    if not expected_state or state != expected_state:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid state parameter",
        )

    try:
        token_data = await _exchange_code_for_tokens(
            http_client,
            settings,
            code=code,
            redirect_uri=_redirect_uri(request, settings),
            code_verifier=request.session.get("code_verifier"),
        )
    except httpx.HTTPError as e:
        logger.error(f"Code redemption failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to communicate with authentication service",
        )

    try:
        claims = await verify_token(
            token_data["id_token"],
            settings,
            http_client,
            nonce=request.session.get("oauth_nonce"),
        )
    except JWTError as e:
        logger.warning(f"ID token rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unable to verify identity token",
        )
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Unable to load signing keys: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token validation is temporarily unavailable",
        )

    request.session.pop("oauth_state", None)
    request.session.pop("oauth_nonce", None)
    request.session.pop("code_verifier", None)

    request.session[SESSION_USER_KEY] = {k: claims[k] for k in USER_CLAIMS if k in claims}
    if token_data.get("access_token"):
        request.session[SESSION_ACCESS_TOKEN_KEY] = token_data["access_token"]

    logger.info("User signed in", extra={"user_name": claims.get("name")})
    return RedirectResponse(url="/", status_code=302)


@auth_router.get("/logout", response_class=RedirectResponse)
async def logout(request: Request, settings: Settings = Depends(get_settings)):
    request.session.clear()
    post_logout = str(request.base_url).rstrip("/") + settings.AZURE_AD.SIGNED_OUT_CALLBACK_PATH
    params = urlencode({"post_logout_redirect_uri": post_logout})
    return RedirectResponse(url=f"{settings.AZURE_AD.logout_endpoint}?{params}", status_code=302)


@auth_router.get("/me")
async def me(request: Request) -> Dict[str, Any]:
    user = request.session.get(SESSION_USER_KEY)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return user


# =============================================================================
# Token Exchange Helper
# =============================================================================

async def _exchange_code_for_tokens(
    http_client: httpx.AsyncClient,
    settings: Settings,
    code: str,
    redirect_uri: str,
    code_verifier: Optional[str] = None,
) -> dict:
    """
    Exchange the authorization code at the policy token endpoint.

    Raises:
        httpx.HTTPError: If the token endpoint rejects the code or the
            response carries no id_token
    """
    payload = {
        "client_id": settings.AZURE_AD.CLIENT_ID,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "scope": _requested_scopes(settings),
    }
    if settings.AZURE_AD.CLIENT_SECRET:
        payload["client_secret"] = settings.AZURE_AD.CLIENT_SECRET
    if code_verifier:
        payload["code_verifier"] = code_verifier

    response = await http_client.post(
        settings.AZURE_AD.token_endpoint,
        data=payload,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=10.0,
    )

    if not response.is_success:
        error_data = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
        error_msg = error_data.get("error_description") or error_data.get("error") or "Token exchange failed"
        raise httpx.HTTPError(f"Token exchange failed: {error_msg}")

    token_data = response.json()
    if "id_token" not in token_data:
        raise httpx.HTTPError("Token response missing id_token")
    return token_data
