"""
HTTP Basic authentication for API connector callbacks.

The identity platform can be configured to call the connector with Basic
credentials. The check is advisory unless AUTH.ENFORCE is set.
"""

import base64
import binascii
import logging
from typing import Optional

from connector.app.config import Settings


logger = logging.getLogger(__name__)


def check_basic_auth(authorization_header: Optional[str], settings: Settings) -> bool:
    """
    Compare Basic credentials against AUTH.USER and AUTH.PASS.

    Args:
        authorization_header: Raw Authorization header value, if any
        settings: Application settings

    Returns:
        True if credentials match or no user is configured, False otherwise.
    """
    expected_user = settings.AUTH.USER
    if not expected_user:
        logger.info("Basic auth user not set, skipping credential check")
        return True

    if not authorization_header:
        logger.warning("Missing Authorization header")
        return False

    if not authorization_header.startswith("Basic "):
        logger.warning("Authorization header is not Basic")
        return False

    encoded = authorization_header[len("Basic "):].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Authorization header is not valid base64")
        return False

    username, separator, password = decoded.partition(":")
    if not separator:
        logger.warning("Basic credentials missing ':' separator")
        return False

    if username != expected_user or password != (settings.AUTH.PASS or ""):
        logger.warning("Basic credentials rejected", extra={"username": username})
        return False

    return True
