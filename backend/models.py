"""Pydantic request and response models for the trip-planning backend."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TripType(str, Enum):
    """Supported activities. Drives routing profile, day count and snapping."""

    HIKING = "hiking"
    CYCLING = "cycling"


# ---------------------------------------------------------------------------
# Route synthesis models
# ---------------------------------------------------------------------------


class Coordinate(BaseModel):
    """A validated geographic position."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Waypoint(BaseModel):
    """A named candidate stop proposed by the language model.

    Geometry is not trusted until ``waypoint_proposer.waypoint_issues``
    returns no issues. Coordinates must arrive as real JSON numbers.
    """

    lat: float = Field(strict=True)
    lng: float = Field(strict=True)
    name: str | None = None


class RoutePoint(BaseModel):
    """A vertex of the routed path, tagged with its trip day."""

    lat: float
    lng: float
    day: int
    """1-based trip day this vertex belongs to."""

    order: int
    """0-based position along the whole path (not reset per day)."""


class Elevation(BaseModel):
    gain: float = 0.0
    loss: float = 0.0


class DailyRoute(BaseModel):
    """One day's share of the route."""

    day: int
    distance_km: float
    duration_hours: float
    elevation: Elevation
    points: list[RoutePoint]


class RouteResult(BaseModel):
    """The complete output of route synthesis."""

    geometry: dict[str, Any]
    """Raw GeoJSON LineString returned by the directions service."""

    points: list[RoutePoint]
    daily_routes: list[DailyRoute]
    total_distance_km: float
    total_duration_hours: float
    total_elevation: Elevation


# ---------------------------------------------------------------------------
# Weather models
# ---------------------------------------------------------------------------


class TemperatureRange(BaseModel):
    min: float
    max: float
    current: float


class DailyForecast(BaseModel):
    """Forecast for one calendar day, summarised from 3-hour slots."""

    date: datetime
    temperature: TemperatureRange
    description: str
    icon: str
    humidity: int
    wind_speed: float
    precipitation: int
    """Mean probability of precipitation, in percent."""


class WeatherForecast(BaseModel):
    forecast: list[DailyForecast] = Field(default_factory=list)


class GeocodeResult(BaseModel):
    lat: float
    lng: float
    display_name: str
    state: str = ""
    country: str = ""

    @property
    def formatted_address(self) -> str:
        return ", ".join(p for p in (self.display_name, self.state, self.country) if p)


class ForecastLocation(BaseModel):
    name: str
    country: str
    coordinates: Coordinate


class WeatherReport(BaseModel):
    """Response from the /weather/{location} endpoint."""

    location: ForecastLocation
    forecast: list[DailyForecast]


class CurrentTemperature(BaseModel):
    current: float
    feels_like: float
    min: float
    max: float


class CurrentConditions(BaseModel):
    """Observed conditions right now, in metric units."""

    temperature: CurrentTemperature
    description: str
    icon: str
    humidity: int
    wind_speed: float
    pressure: int
    """Sea-level pressure in hPa."""

    visibility: int | None = None
    """Metres; omitted by the provider in some conditions."""

    sunrise: datetime
    sunset: datetime


class CurrentWeather(BaseModel):
    """Response from the /weather/{location}/current endpoint."""

    location: ForecastLocation
    current: CurrentConditions


# ---------------------------------------------------------------------------
# Trip planning API models
# ---------------------------------------------------------------------------


class PlanLocation(BaseModel):
    """Start location picked by the user on the frontend."""

    name: str
    lat: float
    lng: float

    @field_validator("lat", "lng")
    @classmethod
    def _non_zero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("Location with lat/lng is required")
        return value


class TripPlanRequest(BaseModel):
    """Request body for the /trip/plan endpoint."""

    location: PlanLocation
    trip_type: TripType


class TripPlanResponse(BaseModel):
    route: RouteResult
    weather: WeatherForecast


class GeocodeRequest(BaseModel):
    """Request body for the /geocode-address endpoint."""

    address: str


class GeocodeResponse(BaseModel):
    """Response from the /geocode-address endpoint."""

    lat: float
    lng: float
    formatted_address: str


# ---------------------------------------------------------------------------
# Saved route models
# ---------------------------------------------------------------------------


class RouteStatus(str, Enum):
    PLANNED = "planned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RouteLocation(BaseModel):
    country: str = Field(min_length=1)
    region: str | None = None
    city: str = Field(min_length=1)
    coordinates: Coordinate


class RouteImage(BaseModel):
    url: str
    alt: str = ""


class RouteCreate(BaseModel):
    """Request body for saving a planned route."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trip_type: TripType
    location: RouteLocation
    route_data: RouteResult
    weather: WeatherForecast = Field(default_factory=WeatherForecast)
    image: RouteImage | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=1000)


class RouteUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trip_type: TripType | None = None
    location: RouteLocation | None = None
    route_data: RouteResult | None = None
    weather: WeatherForecast | None = None
    image: RouteImage | None = None
    status: RouteStatus | None = None
    is_public: bool | None = None
    tags: list[str] | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = Field(default=None, max_length=1000)


class StoredRoute(BaseModel):
    """A saved route as held by the route store."""

    id: str
    user_id: str
    name: str
    description: str | None = None
    trip_type: TripType
    location: RouteLocation
    route_data: RouteResult
    weather: WeatherForecast = Field(default_factory=WeatherForecast)
    image: RouteImage | None = None
    status: RouteStatus = RouteStatus.PLANNED
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)
    rating: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class RouteSummary(BaseModel):
    """Compact projection used by the route list."""

    id: str
    name: str
    description: str | None = None
    trip_type: TripType
    location: RouteLocation
    total_distance_km: float
    total_duration_hours: float
    formatted_distance: str
    formatted_duration: str
    image: RouteImage | None = None
    status: RouteStatus
    created_at: datetime
    weather: WeatherForecast


class RouteDetail(BaseModel):
    """Full projection of a saved route."""

    id: str
    name: str
    description: str | None = None
    trip_type: TripType
    location: RouteLocation
    route_data: RouteResult
    weather: WeatherForecast
    image: RouteImage | None = None
    status: RouteStatus
    is_public: bool
    tags: list[str]
    rating: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class RouteStats(BaseModel):
    total_routes: int = 0
    hiking_routes: int = 0
    cycling_routes: int = 0
    total_distance_km: float = 0.0
    total_duration_hours: float = 0.0
    average_distance_km: float = 0.0
    average_duration_hours: float = 0.0
