"""
Sample weather data served by the protected endpoints.
"""

import random
import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


SUMMARIES = [
    "Freezing",
    "Bracing",
    "Chilly",
    "Cool",
    "Mild",
    "Warm",
    "Balmy",
    "Hot",
    "Sweltering",
    "Scorching",
]


class WeatherForecast(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    forecast_date: datetime.date = Field(..., alias="date")
    temperature_c: int = Field(..., alias="temperatureC")
    temperature_f: int = Field(..., alias="temperatureF")
    summary: Optional[str] = None


def to_fahrenheit(temperature_c: int) -> int:
    return 32 + int(temperature_c / 0.5556)


def make_forecast(days: int = 5, rng: Optional[random.Random] = None) -> List[WeatherForecast]:
    """
    Build a forecast for the ``days`` days after today.

    Temperatures are drawn from [-20, 55) Celsius, summaries from SUMMARIES.
    """
    rng = rng or random.Random()
    today = datetime.date.today()

    forecasts = []
    for offset in range(1, days + 1):
        temperature_c = rng.randrange(-20, 55)
        forecasts.append(
            WeatherForecast(
                forecast_date=today + datetime.timedelta(days=offset),
                temperature_c=temperature_c,
                temperature_f=to_fahrenheit(temperature_c),
                summary=rng.choice(SUMMARIES),
            )
        )
    return forecasts
