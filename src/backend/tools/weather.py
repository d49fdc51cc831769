"""Current weather via the Open-Meteo forecast API."""

from __future__ import annotations

from typing import Any

from core.constants import WEATHER_API_URL
from tools.registry import ToolContext, ToolSpec


async def get_weather(ctx: ToolContext, latitude: float, longitude: float) -> dict[str, Any]:
    response = await ctx.http.get(
        WEATHER_API_URL,
        params={
            "latitude": latitude,
            "longitude": longitude,
            "current": "temperature_2m",
            "hourly": "temperature_2m",
            "daily": "sunrise,sunset",
            "timezone": "auto",
        },
    )
    response.raise_for_status()
    data: dict[str, Any] = response.json()
    return data


GET_WEATHER = ToolSpec(
    name="getWeather",
    description="Get the current weather at a location",
    parameters={
        "type": "object",
        "properties": {
            "latitude": {"type": "number"},
            "longitude": {"type": "number"},
        },
        "required": ["latitude", "longitude"],
    },
    handler=get_weather,
)
