"""OpenWeatherMap geocoding, current conditions and multi-day forecasts.

The forecast endpoint returns 3-hour slots; ``bucket_forecast`` groups them by
UTC calendar day and summarises each day into a ``DailyForecast``.
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from config import Settings
from errors import LocationNotFound, WeatherServiceError
from models import (
    Coordinate,
    CurrentConditions,
    CurrentTemperature,
    CurrentWeather,
    DailyForecast,
    ForecastLocation,
    GeocodeResult,
    TemperatureRange,
    WeatherForecast,
    WeatherReport,
)

logger = logging.getLogger(__name__)

# Days of forecast attached to a planned trip.
TRIP_FORECAST_DAYS: int = 3
# The free forecast API reports every 3 hours.
SLOTS_PER_DAY: int = 8
MAX_FORECAST_DAYS: int = 5

# What indexing and converting an unexpected provider payload can raise.
_MALFORMED_DATA = (
    AttributeError,
    IndexError,
    KeyError,
    OSError,
    OverflowError,
    TypeError,
    ValueError,
)


async def geocode(
    http_client: httpx.AsyncClient,
    settings: Settings,
    location: str,
) -> GeocodeResult:
    """Resolves a free-text place name to coordinates.

    Raises:
        LocationNotFound: If the provider knows no such place.
        WeatherServiceError: On any upstream failure.
    """
    data = await _get(
        http_client,
        settings,
        "/geo/1.0/direct",
        {"q": location, "limit": 1},
    )
    if not data:
        raise LocationNotFound(location)
    try:
        place = data[0]
        return GeocodeResult(
            lat=float(place["lat"]),
            lng=float(place["lon"]),
            display_name=place.get("name", location),
            state=place.get("state", ""),
            country=place.get("country", ""),
        )
    except _MALFORMED_DATA as exc:
        logger.warning("Malformed geocoding data: %r", exc)
        raise WeatherServiceError("Failed to fetch weather data") from exc


async def fetch_forecast(
    http_client: httpx.AsyncClient,
    settings: Settings,
    lat: float,
    lng: float,
    *,
    days: int = TRIP_FORECAST_DAYS,
) -> list[dict[str, Any]]:
    """Returns the raw 3-hour forecast slots for the given position."""
    data = await _get(
        http_client,
        settings,
        "/data/2.5/forecast",
        {"lat": lat, "lon": lng, "units": "metric", "cnt": days * SLOTS_PER_DAY},
    )
    if not isinstance(data, dict):
        return []
    return data.get("list") or []


def bucket_forecast(
    entries: list[dict[str, Any]],
    *,
    days: int,
    start: date | None = None,
) -> list[DailyForecast]:
    """Groups 3-hour slots by UTC day and summarises the first ``days`` days.

    Args:
        entries: Raw ``list`` items from the forecast API.
        days: Maximum number of days to return.
        start: Drop days before this date.

    Raises:
        WeatherServiceError: If a slot is missing fields or has the wrong types.
    """
    try:
        buckets: dict[date, list[dict[str, Any]]] = {}
        for entry in entries:
            moment = datetime.fromtimestamp(entry["dt"], tz=timezone.utc)
            buckets.setdefault(moment.date(), []).append(entry)

        forecasts: list[DailyForecast] = []
        for day in sorted(buckets):
            if start is not None and day < start:
                continue
            if len(forecasts) >= days:
                break
            forecasts.append(_summarise_day(buckets[day]))
    except _MALFORMED_DATA as exc:
        logger.warning("Malformed forecast data: %r", exc)
        raise WeatherServiceError("Failed to fetch weather data") from exc
    return forecasts


def _summarise_day(slots: list[dict[str, Any]]) -> DailyForecast:
    temperatures = [s["main"]["temp"] for s in slots]
    descriptions = [s["weather"][0]["description"] for s in slots]
    humidity = [s["main"]["humidity"] for s in slots]
    wind = [s.get("wind", {}).get("speed", 0.0) for s in slots]
    precipitation = [s.get("pop", 0.0) * 100 for s in slots]

    return DailyForecast(
        date=datetime.fromtimestamp(slots[0]["dt"], tz=timezone.utc),
        temperature=TemperatureRange(
            min=min(temperatures),
            max=max(temperatures),
            current=temperatures[0],
        ),
        description=_most_frequent(descriptions),
        icon=slots[0]["weather"][0].get("icon", ""),
        humidity=round(sum(humidity) / len(humidity)),
        wind_speed=round(sum(wind) / len(wind), 1),
        precipitation=round(sum(precipitation) / len(precipitation)),
    )


def _most_frequent(items: list[str]) -> str:
    """Most common item; ties go to the one seen first."""
    if not items:
        return ""
    return Counter(items).most_common(1)[0][0]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def weather_for_trip(
    http_client: httpx.AsyncClient,
    settings: Settings,
    lat: float,
    lng: float,
    *,
    today: date | None = None,
) -> WeatherForecast:
    """Forecast for the days after ``today`` at the trip's start.

    Weather is an enrichment only: upstream failures are logged and produce an
    empty forecast rather than failing the trip plan.
    """
    start = (today or datetime.now(timezone.utc).date()) + timedelta(days=1)
    try:
        # One extra day of slots so tomorrow onwards is fully covered.
        entries = await fetch_forecast(
            http_client, settings, lat, lng, days=TRIP_FORECAST_DAYS + 1
        )
        forecast = bucket_forecast(entries, days=TRIP_FORECAST_DAYS, start=start)
    except WeatherServiceError as exc:
        logger.warning("Weather forecast unavailable for %s,%s: %s", lat, lng, exc)
        return WeatherForecast()

    logger.info("Weather forecast ready: %d days", len(forecast))
    return WeatherForecast(forecast=forecast)


async def forecast_for_location(
    http_client: httpx.AsyncClient,
    settings: Settings,
    location: str,
    *,
    days: int = TRIP_FORECAST_DAYS,
) -> WeatherReport:
    """Geocodes ``location`` and returns its forecast starting today.

    Raises:
        LocationNotFound: If the place cannot be geocoded.
        WeatherServiceError: On upstream failures.
    """
    place = await geocode(http_client, settings, location)
    entries = await fetch_forecast(http_client, settings, place.lat, place.lng, days=days)
    return WeatherReport(
        location=_forecast_location(place),
        forecast=bucket_forecast(entries, days=days),
    )


async def current_for_location(
    http_client: httpx.AsyncClient,
    settings: Settings,
    location: str,
) -> CurrentWeather:
    """Geocodes ``location`` and returns the conditions observed there now.

    Raises:
        LocationNotFound: If the place cannot be geocoded.
        WeatherServiceError: On upstream failures or a malformed reply.
    """
    place = await geocode(http_client, settings, location)
    data = await _get(
        http_client,
        settings,
        "/data/2.5/weather",
        {"lat": place.lat, "lon": place.lng, "units": "metric"},
    )
    return CurrentWeather(
        location=_forecast_location(place),
        current=read_current_conditions(data),
    )


def read_current_conditions(data: Any) -> CurrentConditions:
    """Maps a ``/data/2.5/weather`` body onto ``CurrentConditions``.

    Raises:
        WeatherServiceError: If required fields are missing or malformed.
    """
    try:
        main = data["main"]
        return CurrentConditions(
            temperature=CurrentTemperature(
                current=main["temp"],
                feels_like=main["feels_like"],
                min=main["temp_min"],
                max=main["temp_max"],
            ),
            description=data["weather"][0]["description"],
            icon=data["weather"][0].get("icon", ""),
            humidity=round(main["humidity"]),
            wind_speed=(data.get("wind") or {}).get("speed", 0.0),
            pressure=round(main["pressure"]),
            visibility=data.get("visibility"),
            sunrise=datetime.fromtimestamp(data["sys"]["sunrise"], tz=timezone.utc),
            sunset=datetime.fromtimestamp(data["sys"]["sunset"], tz=timezone.utc),
        )
    except _MALFORMED_DATA as exc:
        logger.warning("Malformed current weather data: %r", exc)
        raise WeatherServiceError("Failed to fetch weather data") from exc


def _forecast_location(place: GeocodeResult) -> ForecastLocation:
    return ForecastLocation(
        name=place.display_name,
        country=place.country,
        coordinates=Coordinate(lat=place.lat, lng=place.lng),
    )


async def _get(
    http_client: httpx.AsyncClient,
    settings: Settings,
    path: str,
    params: dict[str, Any],
) -> Any:
    """GETs an OpenWeatherMap endpoint and returns the decoded JSON body."""
    api_key = settings.require("weather_api_key")
    try:
        response = await http_client.get(
            f"{settings.weather_base_url}{path}",
            params={**params, "appid": api_key},
            timeout=settings.weather_timeout_s,
        )
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("Weather API returned HTTP %s for %s", status, path)
        if status == 401:
            raise WeatherServiceError("Weather API key is invalid", 500) from exc
        if status == 429:
            raise WeatherServiceError("Weather API rate limit exceeded", 429) from exc
        raise WeatherServiceError("Failed to fetch weather data") from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Weather API error for %s: %s", path, exc)
        raise WeatherServiceError("Failed to fetch weather data") from exc
