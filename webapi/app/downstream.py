"""
Calls the protected weather API with the signed-in user's access token.
"""

import logging
from typing import List

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from .auth.routes import SESSION_ACCESS_TOKEN_KEY
from .config import Settings, get_settings
from .dependencies import get_http_client
from .weather import WeatherForecast


logger = logging.getLogger(__name__)

downstream_router = APIRouter(tags=["Downstream API"])


async def fetch_forecast(
    http_client: httpx.AsyncClient,
    settings: Settings,
    access_token: str,
) -> List[WeatherForecast]:
    """
    GET the downstream /weatherforecast and log each entry.

    Failures are logged and yield an empty list.
    """
    url = f"{settings.DOWNSTREAM_API.BASE_URL.rstrip('/')}/weatherforecast"
    try:
        response = await http_client.get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10.0,
        )
        response.raise_for_status()
        forecasts = [WeatherForecast.model_validate(item) for item in response.json()]
    except (httpx.HTTPError, ValueError, ValidationError) as e:
        logger.error(f"Downstream weather call failed: {e}", extra={"url": url})
        return []

    for forecast in forecasts:
        logger.info(
            f"{forecast.forecast_date} {forecast.temperature_c}C {forecast.summary}",
            extra={"forecast_date": str(forecast.forecast_date)},
        )
    return forecasts


@downstream_router.get("/forecast", response_model=List[WeatherForecast])
async def forecast(
    request: Request,
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    access_token = request.session.get(SESSION_ACCESS_TOKEN_KEY)
    if not access_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return await fetch_forecast(http_client, settings, access_token)
