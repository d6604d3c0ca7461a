import logging

import httpx
from fastapi import Depends, Header, HTTPException, Request, status

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def verify_api_key(
    x_api_key: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency that ensures requests carry the configured X-API-KEY value.
    """
    expected = settings.API_KEY
    if not expected:
        # fail fast and log configuration problem
        logger.error("API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: API_KEY not set",
        )
    if not x_api_key:
        logger.warning("API key was not provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key was not provided")
    if x_api_key != expected:
        logger.warning("Invalid API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    return x_api_key


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency returning the shared outbound HTTP client from app state.
    """
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="HTTP client not available",
        )
    return client
