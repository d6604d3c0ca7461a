"""
Authentication helpers for the connector.

This package provides:
- Basic credential checks for inbound API connector calls
- Token acquisition for password validation and Microsoft Graph
"""

from .basic import check_basic_auth
from .tokens import (
    PasswordGrantResult,
    TokenAcquisitionError,
    TokenClient,
    get_http_client,
    get_token_client,
)

__all__ = [
    "check_basic_auth",
    "PasswordGrantResult",
    "TokenAcquisitionError",
    "TokenClient",
    "get_http_client",
    "get_token_client",
]
