"""
Bearer token validation for Azure AD B2C access tokens.

This module handles:
- Fetching and caching the policy's JWKS (JSON Web Key Set)
- Verifying RS256 signatures and standard claims
- Enforcing the configured scopes on protected routes
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwk, jwt

from webapi.app.config import Settings, get_settings
from webapi.app.dependencies import get_http_client


logger = logging.getLogger(__name__)


# =============================================================================
# JWKS Cache
# =============================================================================

_jwks_cache: Optional[Dict[str, Any]] = None
_jwks_cache_time: float = 0.0


def reset_jwks_cache() -> None:
    global _jwks_cache, _jwks_cache_time
    _jwks_cache = None
    _jwks_cache_time = 0.0


async def fetch_jwks(
    settings: Settings,
    http_client: httpx.AsyncClient,
    force_refresh: bool = False,
) -> Dict[str, Any]:
    """
    Fetch the B2C policy JWKS with caching.

    Args:
        settings: Application settings
        http_client: Shared outbound HTTP client
        force_refresh: If True, bypass cache and fetch fresh JWKS

    Returns:
        JWKS document containing keys

    Raises:
        httpx.HTTPError: If JWKS endpoint is unreachable
        ValueError: If response is invalid
    """
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()
    if not force_refresh and _jwks_cache and (current_time - _jwks_cache_time) < settings.JWKS_CACHE_SECONDS:
        return _jwks_cache

    response = await http_client.get(settings.AZURE_AD.jwks_uri, timeout=10.0)
    response.raise_for_status()
    jwks_data = response.json()

    if "keys" not in jwks_data:
        raise ValueError("Invalid JWKS response: missing 'keys' field")

    _jwks_cache = jwks_data
    _jwks_cache_time = current_time
    return jwks_data


def get_signing_key(token: str, jwks: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Return the JWKS entry whose kid matches the token header, if any.

    Raises:
        JWTError: If the token header is malformed or has no kid
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise JWTError(f"Failed to decode token header: {e}")

    kid = unverified_header.get("kid")
    if not kid:
        raise JWTError("Token header missing 'kid' (Key ID)")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


async def verify_token(
    token: str,
    settings: Settings,
    http_client: httpx.AsyncClient,
    nonce: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Verify a B2C-issued JWT and return its claims.

    Checks the signature, audience (CLIENT_ID), exp and nbf, the issuer when
    a tenant ID is configured, and the nonce when one is given.

    Raises:
        JWTError: If the token is invalid, expired or signed by an unknown key
        httpx.HTTPError: If the JWKS endpoint is unreachable
    """
    jwks = await fetch_jwks(settings, http_client)
    signing_key = get_signing_key(token, jwks)
    if not signing_key:
        # keys may have rotated
        jwks = await fetch_jwks(settings, http_client, force_refresh=True)
        signing_key = get_signing_key(token, jwks)
        if not signing_key:
            raise JWTError("Unable to find matching signing key in JWKS")

    try:
        public_key = jwk.construct(signing_key, algorithm="RS256")
    except Exception as e:
        raise JWTError(f"Failed to construct public key from JWK: {e}")

    issuer = settings.AZURE_AD.issuer
    try:
        claims = jwt.decode(
            token,
            public_key.to_pem().decode("utf-8"),
            algorithms=["RS256"],
            audience=settings.AZURE_AD.CLIENT_ID,
            issuer=issuer,
            options={
                "verify_iss": issuer is not None,
                "verify_at_hash": False,
                "leeway": 10,
            },
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.JWTClaimsError as e:
        raise JWTError(f"Invalid token claims: {e}")

    if nonce is not None and claims.get("nonce") != nonce:
        raise JWTError("Nonce mismatch")

    return claims


# =============================================================================
# Scope Enforcement
# =============================================================================

def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def has_required_scope(claims: Dict[str, Any], required: List[str]) -> bool:
    """True if any required scope appears in ``scp`` or ``roles``."""
    granted = set((claims.get("scp") or "").split())
    roles = claims.get("roles") or []
    if isinstance(roles, str):
        roles = roles.split()
    granted.update(roles)
    return any(scope in granted for scope in required)


async def require_scopes(
    request: Request,
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> Dict[str, Any]:
    """
    Dependency for routes that need a valid B2C access token with one of
    the configured scopes.

    Returns:
        Verified token claims

    Raises:
        HTTPException: 401 for missing or invalid tokens, 403 when no
            required scope is granted, 500 when no scopes are configured,
            503 when the signing keys cannot be fetched
    """
    token = extract_bearer_token(request.headers.get("Authorization"))

    required = settings.AZURE_AD.scopes_list
    if not required:
        logger.error("AZURE_AD__SCOPES is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: no required scopes set",
        )

    try:
        claims = await verify_token(token, settings, http_client)
    except JWTError as e:
        logger.warning(f"Bearer token rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Unable to load signing keys: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token validation is temporarily unavailable",
        )

    if not has_required_scope(claims, required):
        logger.warning("Token lacks required scope", extra={"required_scopes": required})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Token does not grant any of the required scopes: {' '.join(required)}",
        )

    return claims
