"""Tests for weather.py.

OpenWeatherMap is served by ``httpx.MockTransport``.
"""

from datetime import date, datetime, timezone

import httpx
import pytest

import weather
from errors import LocationNotFound, WeatherServiceError

# ---------------------------------------------------------------------------
# Fixtures and helpers
# ---------------------------------------------------------------------------


def _slot(when: datetime, temp: float, description="clear sky", humidity=60, wind=3.0, pop=0.2):
    return {
        "dt": int(when.timestamp()),
        "main": {"temp": temp, "humidity": humidity},
        "weather": [{"description": description, "icon": "01d"}],
        "wind": {"speed": wind},
        "pop": pop,
    }


def _utc(day: int, hour: int) -> datetime:
    return datetime(2026, 10, day, hour, tzinfo=timezone.utc)


_SLOTS = [
    _slot(_utc(18, 21), 14.0, "light rain", pop=0.8),
    _slot(_utc(19, 0), 12.0, "clear sky", humidity=70, wind=2.0, pop=0.0),
    _slot(_utc(19, 3), 11.0, "few clouds", humidity=80, wind=4.0, pop=0.1),
    _slot(_utc(19, 6), 15.0, "few clouds", humidity=75, wind=3.5, pop=0.2),
    _slot(_utc(20, 12), 20.0, "clear sky"),
    _slot(_utc(21, 12), 19.0, "overcast clouds"),
    _slot(_utc(22, 12), 18.0, "moderate rain"),
]

_CURRENT = {
    "weather": [{"description": "clear sky", "icon": "01d"}],
    "main": {
        "temp": 18.2,
        "feels_like": 17.9,
        "temp_min": 16.0,
        "temp_max": 20.1,
        "pressure": 1016,
        "humidity": 64,
    },
    "visibility": 10000,
    "wind": {"speed": 4.1},
    "sys": {"sunrise": 1792303500, "sunset": 1792342800},
}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _owm(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/geo/1.0/direct":
        if request.url.params["q"] == "Atlantis":
            return httpx.Response(200, json=[])
        return httpx.Response(
            200,
            json=[
                {
                    "name": "Barcelona",
                    "lat": 41.3851,
                    "lon": 2.1734,
                    "state": "Catalonia",
                    "country": "ES",
                }
            ],
        )
    if request.url.path == "/data/2.5/weather":
        return httpx.Response(200, json=_CURRENT)
    return httpx.Response(200, json={"list": _SLOTS})


# ---------------------------------------------------------------------------
# bucket_forecast
# ---------------------------------------------------------------------------


def test_bucket_forecast_summarises_each_day():
    forecast = weather.bucket_forecast(_SLOTS, days=3, start=date(2026, 10, 19))

    assert [f.date.date() for f in forecast] == [
        date(2026, 10, 19),
        date(2026, 10, 20),
        date(2026, 10, 21),
    ]
    first = forecast[0]
    assert first.temperature.min == 11.0
    assert first.temperature.max == 15.0
    assert first.temperature.current == 12.0
    assert first.description == "few clouds"
    assert first.humidity == 75
    assert first.wind_speed == 3.2
    assert first.precipitation == 10


def test_bucket_forecast_without_start_keeps_today():
    forecast = weather.bucket_forecast(_SLOTS, days=2)
    assert forecast[0].date.date() == date(2026, 10, 18)
    assert forecast[0].description == "light rain"
    assert len(forecast) == 2


def test_bucket_forecast_empty():
    assert weather.bucket_forecast([], days=3) == []


def test_bucket_forecast_rejects_malformed_slot():
    with pytest.raises(WeatherServiceError):
        weather.bucket_forecast([{"dt": 2000000000, "main": {"temp": 10}}], days=3)


# ---------------------------------------------------------------------------
# weather_for_trip
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_weather_for_trip_starts_tomorrow(settings):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return _owm(request)

    async with _client(handler) as client:
        result = await weather.weather_for_trip(
            client, settings, 41.3851, 2.1734, today=date(2026, 10, 18)
        )

    assert len(result.forecast) == 3
    assert result.forecast[0].date.date() == date(2026, 10, 19)
    assert seen["params"]["units"] == "metric"
    assert seen["params"]["appid"] == "test-weather-key"


@pytest.mark.asyncio
async def test_weather_for_trip_is_empty_on_upstream_failure(settings):
    def handler(request):
        return httpx.Response(503, text="maintenance")

    async with _client(handler) as client:
        result = await weather.weather_for_trip(client, settings, 41.3851, 2.1734)

    assert result.forecast == []


@pytest.mark.asyncio
async def test_weather_for_trip_is_empty_on_malformed_slots(settings):
    def handler(request):
        malformed = {"dt": int(_utc(19, 9).timestamp()), "main": {"temp": 10}}
        return httpx.Response(200, json={"list": [*_SLOTS, malformed]})

    async with _client(handler) as client:
        result = await weather.weather_for_trip(
            client, settings, 41.3851, 2.1734, today=date(2026, 10, 18)
        )

    assert result.forecast == []


# ---------------------------------------------------------------------------
# forecast_for_location / geocode
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_forecast_for_location(settings):
    async with _client(_owm) as client:
        report = await weather.forecast_for_location(
            client, settings, "Barcelona, Spain", days=2
        )

    assert report.location.name == "Barcelona"
    assert report.location.country == "ES"
    assert report.location.coordinates.lat == 41.3851
    assert len(report.forecast) == 2


@pytest.mark.asyncio
async def test_unknown_location(settings):
    async with _client(_owm) as client:
        with pytest.raises(LocationNotFound):
            await weather.geocode(client, settings, "Atlantis")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, message, mapped",
    [
        (401, "Weather API key is invalid", 500),
        (429, "Weather API rate limit exceeded", 429),
        (500, "Failed to fetch weather data", 502),
    ],
)
async def test_upstream_errors_are_mapped(settings, status, message, mapped):
    def handler(request):
        return httpx.Response(status, json={"cod": status})

    async with _client(handler) as client:
        with pytest.raises(WeatherServiceError, match=message) as excinfo:
            await weather.forecast_for_location(client, settings, "Barcelona")

    assert excinfo.value.status_code == mapped


@pytest.mark.asyncio
async def test_geocode_formats_address(settings):
    async with _client(_owm) as client:
        place = await weather.geocode(client, settings, "Barcelona")

    assert place.formatted_address == "Barcelona, Catalonia, ES"


def test_location_not_found_is_a_404_weather_error():
    exc = LocationNotFound("Atlantis")
    assert isinstance(exc, WeatherServiceError)
    assert exc.status_code == 404


# ---------------------------------------------------------------------------
# current_for_location
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_current_for_location(settings):
    seen = []

    def handler(request):
        seen.append((request.url.path, dict(request.url.params)))
        return _owm(request)

    async with _client(handler) as client:
        report = await weather.current_for_location(client, settings, "Barcelona")

    assert report.location.name == "Barcelona"
    current = report.current
    assert current.temperature.current == 18.2
    assert current.temperature.feels_like == 17.9
    assert (current.temperature.min, current.temperature.max) == (16.0, 20.1)
    assert current.description == "clear sky"
    assert current.humidity == 64
    assert current.wind_speed == 4.1
    assert current.pressure == 1016
    assert current.visibility == 10000
    assert current.sunrise == datetime.fromtimestamp(1792303500, tz=timezone.utc)
    path, params = seen[-1]
    assert path == "/data/2.5/weather"
    assert params["units"] == "metric"
    assert params["lat"] == "41.3851"


def test_current_conditions_without_visibility():
    data = {key: value for key, value in _CURRENT.items() if key != "visibility"}
    assert weather.read_current_conditions(data).visibility is None


@pytest.mark.parametrize(
    "data",
    [
        {},
        {**_CURRENT, "weather": []},
        {**_CURRENT, "main": {"temp": 18.2}},
        {**_CURRENT, "sys": None},
    ],
)
def test_malformed_current_conditions(data):
    with pytest.raises(WeatherServiceError):
        weather.read_current_conditions(data)
