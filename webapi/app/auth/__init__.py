"""
Authentication for the demo API.

This package provides:
- B2C access token validation with required scopes
- The B2C OIDC sign-in flow for browser users
"""

from .bearer import require_scopes, verify_token
from .routes import auth_router

__all__ = ["auth_router", "require_scopes", "verify_token"]
