"""Trail planner backend service.

Exposes endpoints for AI-assisted hiking/cycling trip planning, weather
forecasts and current conditions, place lookup, and saved-route management.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response

import route_generation
import weather
from config import Settings
from errors import (
    ConfigurationError,
    ExhaustedRetries,
    LocationNotFound,
    RouteAccessDenied,
    RouteNotFound,
    WeatherServiceError,
)
from models import (
    CurrentWeather,
    GeocodeRequest,
    GeocodeResponse,
    RouteCreate,
    RouteDetail,
    RouteStats,
    RouteSummary,
    RouteUpdate,
    TripPlanRequest,
    TripPlanResponse,
    TripType,
    WeatherReport,
)
from route_store import RouteStore, to_detail, to_summary

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.settings = Settings.from_env()
    app.state.route_store = RouteStore()
    yield


app = FastAPI(
    title="Trail Planner Backend",
    description="AI-generated hiking and cycling routes with weather forecasts.",
    version="0.1.0",
    lifespan=lifespan,
)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_route_store(request: Request) -> RouteStore:
    return request.app.state.route_store


def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Caller identity, set by the authenticating gateway in front of us."""
    return x_user_id


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/trip/plan", response_model=TripPlanResponse)
async def plan_trip(
    request: TripPlanRequest,
    settings: Settings = Depends(get_settings),
) -> TripPlanResponse:
    """Plans a hiking or cycling trip around the requested location.

    Runs route generation (waypoint proposal, snapping, routing, day split,
    with up to 3 attempts) concurrently with the weather forecast fetch for
    the start coordinates.

    Args:
        request: Start location (name plus non-zero lat/lng) and trip type.

    Returns:
        ``TripPlanResponse`` with the synthesized route and a 3-day forecast.

    Raises:
        HTTPException 500: If a required API key is not configured.
        HTTPException 502: If every route generation attempt failed.
    """
    try:
        for field in (
            settings.llm_key_field(),
            "openrouteservice_api_key",
            "weather_api_key",
        ):
            settings.require(field)
    except ConfigurationError as exc:
        logging.error("Trip planning misconfigured: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    location = request.location
    try:
        async with httpx.AsyncClient() as client:
            weather_task = asyncio.create_task(
                weather.weather_for_trip(client, settings, location.lat, location.lng)
            )
            try:
                route = await route_generation.generate(
                    location.name,
                    request.trip_type,
                    settings=settings,
                    http_client=client,
                )
            except BaseException:
                # The forecast must not outlive the shared client.
                weather_task.cancel()
                await asyncio.gather(weather_task, return_exceptions=True)
                raise
            forecast = await weather_task
    except ExhaustedRetries as exc:
        logging.error("Trip planning failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to plan trip") from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("plan_trip failed")
        raise HTTPException(status_code=502, detail="Failed to plan trip") from exc

    return TripPlanResponse(route=route, weather=forecast)


# ---------------------------------------------------------------------------
# Weather and geocoding
# ---------------------------------------------------------------------------


@contextmanager
def _weather_errors():
    """Maps weather-provider failures onto HTTP errors."""
    try:
        yield
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except LocationNotFound as exc:
        raise HTTPException(status_code=404, detail="Location not found") from exc
    except WeatherServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


@app.get("/weather/{location}", response_model=WeatherReport)
async def weather_forecast(
    location: str,
    days: int = Query(3, ge=1, le=weather.MAX_FORECAST_DAYS),
    settings: Settings = Depends(get_settings),
) -> WeatherReport:
    """Returns a daily forecast for a free-text location.

    Raises:
        HTTPException 404: If the location could not be geocoded.
        HTTPException 429: If the weather provider is rate limiting us.
        HTTPException 500: If the weather API key is missing or invalid.
        HTTPException 502: On other upstream failures.
    """
    with _weather_errors():
        async with httpx.AsyncClient() as client:
            return await weather.forecast_for_location(
                client, settings, location, days=days
            )


@app.get("/weather/{location}/current", response_model=CurrentWeather)
async def current_weather(
    location: str,
    settings: Settings = Depends(get_settings),
) -> CurrentWeather:
    """Returns the conditions observed right now at a free-text location.

    Errors are mapped as for ``GET /weather/{location}``.
    """
    with _weather_errors():
        async with httpx.AsyncClient() as client:
            return await weather.current_for_location(client, settings, location)


@app.post("/geocode-address", response_model=GeocodeResponse)
async def geocode_address(
    request: GeocodeRequest,
    settings: Settings = Depends(get_settings),
) -> GeocodeResponse:
    """Resolves the start-location search box text to coordinates.

    Raises:
        HTTPException 400: If address is empty.
        HTTPException 404: If nothing matches the address.
        HTTPException 500: If the weather API key is missing or invalid.
        HTTPException 502: On other upstream failures.
    """
    address = request.address.strip()
    if not address:
        raise HTTPException(status_code=400, detail="address must not be empty.")
    with _weather_errors():
        async with httpx.AsyncClient() as client:
            place = await weather.geocode(client, settings, address)
    return GeocodeResponse(
        lat=place.lat,
        lng=place.lng,
        formatted_address=place.formatted_address,
    )


# ---------------------------------------------------------------------------
# Saved routes
# ---------------------------------------------------------------------------


def _load_route(store: RouteStore, user_id: str, route_id: str):
    try:
        return store.get(user_id, route_id)
    except RouteNotFound as exc:
        raise HTTPException(status_code=404, detail="Route not found") from exc
    except RouteAccessDenied as exc:
        raise HTTPException(
            status_code=403, detail="Not authorized to access this route"
        ) from exc


@app.get("/routes", response_model=list[RouteSummary])
async def list_routes(
    trip_type: TripType | None = None,
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> list[RouteSummary]:
    """Lists the caller's saved routes, newest first."""
    return [to_summary(r) for r in store.list_routes(user_id, trip_type)]


@app.get("/routes/stats", response_model=RouteStats)
async def route_stats(
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> RouteStats:
    return store.stats(user_id)


@app.get("/routes/{route_id}", response_model=RouteDetail)
async def get_route(
    route_id: str,
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> RouteDetail:
    return to_detail(_load_route(store, user_id, route_id))


@app.post("/routes", response_model=RouteDetail, status_code=201)
async def create_route(
    payload: RouteCreate,
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> RouteDetail:
    """Saves a planned route together with its name, tags and notes."""
    return to_detail(store.create(user_id, payload))


@app.put("/routes/{route_id}", response_model=RouteDetail)
async def update_route(
    route_id: str,
    changes: RouteUpdate,
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> RouteDetail:
    """Applies a partial update; fields missing from the body are kept."""
    _load_route(store, user_id, route_id)
    return to_detail(store.update(user_id, route_id, changes))


@app.delete("/routes/{route_id}", status_code=204)
async def delete_route(
    route_id: str,
    user_id: str = Depends(get_user_id),
    store: RouteStore = Depends(get_route_store),
) -> Response:
    _load_route(store, user_id, route_id)
    store.delete(user_id, route_id)
    return Response(status_code=204)
