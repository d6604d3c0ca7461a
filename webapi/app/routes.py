import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .auth.bearer import require_scopes
from .config import Settings, get_settings
from .dependencies import verify_api_key
from .weather import WeatherForecast, make_forecast


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Demo API"])


class EnvironmentInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    environment_name: str = Field(..., alias="environmentName")
    application_name: str = Field(..., alias="applicationName")
    content_root_path: str = Field(..., alias="contentRootPath")
    web_root_path: Optional[str] = Field(None, alias="webRootPath")
    is_development: bool = Field(..., alias="isDevelopment")
    is_production: bool = Field(..., alias="isProduction")
    is_staging: bool = Field(..., alias="isStaging")


def describe_environment(settings: Settings) -> EnvironmentInfo:
    name = settings.ENVIRONMENT_NAME
    return EnvironmentInfo(
        environment_name=name,
        application_name=settings.APPLICATION_NAME,
        content_root_path=settings.CONTENT_ROOT_PATH,
        web_root_path=settings.WEB_ROOT_PATH,
        is_development=name.lower() == "development",
        is_production=name.lower() == "production",
        is_staging=name.lower() == "staging",
    )


@router.get("/weatherforecast", response_model=List[WeatherForecast])
async def weather_forecast(claims: Dict[str, Any] = Depends(require_scopes)):
    """Five-day forecast for callers holding one of the required scopes."""
    logger.info(
        "Weather forecast requested",
        extra={"user_name": claims.get("name"), "user_emails": claims.get("emails")},
    )
    return make_forecast()


@router.get(
    "/weatherforecastsecure",
    response_model=List[WeatherForecast],
    dependencies=[Depends(verify_api_key)],
)
async def weather_forecast_secure():
    logger.info("Getting weather forecast")
    return make_forecast()


@router.get("/environment", response_model=EnvironmentInfo)
async def environment(settings: Settings = Depends(get_settings)):
    return describe_environment(settings)


@router.get("/environmentsecure", response_model=EnvironmentInfo)
async def environment_secure(
    claims: Dict[str, Any] = Depends(require_scopes),
    settings: Settings = Depends(get_settings),
):
    return describe_environment(settings)
