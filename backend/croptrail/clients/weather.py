"""Google Weather and Air Quality API adapters.

`fetch_weather` is the primary lookup and raises `UpstreamServiceError` on
any failure; callers decide whether to fall back or skip.
`fetch_air_quality` is enrichment only and returns None on failure.
"""

import logging

import httpx
from pydantic import ValidationError

from croptrail.clients.http import body_excerpt
from croptrail.config import settings
from croptrail.middleware.exceptions import UpstreamServiceError
from croptrail.schemas.environment import WeatherSnapshot

logger = logging.getLogger(__name__)


def _nested(data: dict, *path):
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_weather(data: dict) -> WeatherSnapshot:
    """Map a currentConditions payload onto a WeatherSnapshot."""
    return WeatherSnapshot(
        temperature_celsius=_nested(data, "temperature", "degrees"),
        humidity_percentage=data.get("relativeHumidity"),
        weather_condition=_nested(data, "weatherCondition", "description", "text")
        or _nested(data, "weatherCondition", "type"),
        uv_index=data.get("uvIndex"),
        precipitation_mm=_nested(data, "precipitation", "qpf", "quantity") or 0,
        wind_speed_kmh=_nested(data, "wind", "speed", "value"),
        raw={"weather": data},
    )


async def fetch_weather(
    client: httpx.AsyncClient,
    latitude: float,
    longitude: float,
) -> WeatherSnapshot:
    if not settings.weather_api_key:
        raise UpstreamServiceError("Weather API key not configured")

    try:
        response = await client.get(
            settings.weather_api_url,
            params={
                "key": settings.weather_api_key,
                "location.latitude": latitude,
                "location.longitude": longitude,
                "unitsSystem": "METRIC",
            },
        )
    except httpx.HTTPError as exc:
        logger.error(f"Weather API request failed: {exc}")
        raise UpstreamServiceError("Weather lookup failed")

    if response.status_code != 200:
        logger.error(
            f"Weather API error {response.status_code}: {body_excerpt(response)}"
        )
        raise UpstreamServiceError("Weather lookup failed")

    try:
        data = response.json()
    except ValueError:
        raise UpstreamServiceError("Weather lookup returned an unreadable body")
    if not isinstance(data, dict) or "temperature" not in data:
        raise UpstreamServiceError("Weather lookup returned no current conditions")

    try:
        return parse_weather(data)
    except ValidationError as exc:
        logger.error(f"Weather API returned unusable conditions: {exc}")
        raise UpstreamServiceError("Weather lookup returned an unreadable body")


async def fetch_air_quality(
    client: httpx.AsyncClient,
    latitude: float,
    longitude: float,
) -> tuple[int | None, dict | None]:
    """Return (aqi, raw payload); (None, None) when unavailable."""
    if not settings.weather_api_key:
        return None, None

    try:
        response = await client.post(
            settings.air_quality_api_url,
            params={"key": settings.weather_api_key},
            json={"location": {"latitude": latitude, "longitude": longitude}},
        )
        response.raise_for_status()
        data = response.json()
        indexes = data.get("indexes") or []
        aqi = indexes[0].get("aqi") if indexes else None
        aqi = int(aqi) if aqi is not None else None
    except (httpx.HTTPError, AttributeError, LookupError, TypeError, ValueError) as exc:
        logger.warning(f"Air quality lookup failed, continuing without AQI: {exc}")
        return None, None

    return aqi, data
