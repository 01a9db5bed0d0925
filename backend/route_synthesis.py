"""Turns validated waypoints into a routed, day-partitioned path.

Steps:
  1.  Snap every waypoint to the network (all-or-nothing).
  2.  Cycling only: close the loop when the path ends far from its start.
  3.  Request full-detail directions (elevation, instructions, surface info),
      avoiding ferries when the service supports it.
  4.  Split the path at half its length into days and apportion distance,
      duration and elevation by each day's share.

Steps 1–3 raise ``SynthesisError`` subclasses; step 4 is pure computation.
"""

import logging
import re
from typing import Any

import httpx

from config import Settings
from errors import DirectionsServiceError
from geometry import cumulative_distances_m, distance_m
from models import (
    Coordinate,
    DailyRoute,
    Elevation,
    RoutePoint,
    RouteResult,
    TripType,
    Waypoint,
)
from snapper import ROUTING_PROFILES, ors_headers, snap_waypoints

logger = logging.getLogger(__name__)

# Cycling routes must end within this many metres of their start.
LOOP_CLOSURE_M: float = 100.0

DAY_COUNTS: dict[TripType, int] = {
    TripType.CYCLING: 2,
    TripType.HIKING: 1,
}

_EXTRA_INFO = ["waytype", "steepness", "surface"]
_AVOID_OPTIONS = {"avoid_features": ["ferries"]}

# Error text OpenRouteService returns when a profile rejects ``options``.
_UNKNOWN_OPTION_RE = re.compile(
    r"Unknown parameter.*(options|avoid_features)", re.IGNORECASE
)


async def synthesize(
    http_client: httpx.AsyncClient,
    settings: Settings,
    waypoints: list[Waypoint],
    trip_type: TripType,
) -> RouteResult:
    """Builds a ``RouteResult`` from validated waypoints.

    Raises:
        SnapFailure: If the waypoints cannot be snapped.
        DirectionsServiceError: If no usable route comes back.
    """
    logger.info(
        "Synthesizing %s route from %d waypoints", trip_type.value, len(waypoints)
    )
    coordinates = await snap_waypoints(http_client, settings, waypoints, trip_type)
    coordinates = close_loop(coordinates, trip_type)

    feature = await _request_directions(http_client, settings, coordinates, trip_type)
    try:
        result = assemble_route(feature, trip_type)
    except (TypeError, ValueError) as exc:
        # Out-of-range vertices or non-numeric summary values.
        raise DirectionsServiceError(f"Malformed directions response: {exc}") from exc
    logger.info(
        "Route synthesized: %d points, %.1fkm, %.1fh",
        len(result.points),
        result.total_distance_km,
        result.total_duration_hours,
    )
    return result


def close_loop(coordinates: list[Coordinate], trip_type: TripType) -> list[Coordinate]:
    """Appends the start point to cycling paths that end too far from it."""
    if trip_type is not TripType.CYCLING or len(coordinates) < 2:
        return coordinates
    gap = distance_m(coordinates[0], coordinates[-1])
    if gap > LOOP_CLOSURE_M:
        logger.info("Closing cycling loop (end is %.0fm from start)", gap)
        return [*coordinates, coordinates[0]]
    return coordinates


# ---------------------------------------------------------------------------
# Directions request
# ---------------------------------------------------------------------------


async def _request_directions(
    http_client: httpx.AsyncClient,
    settings: Settings,
    coordinates: list[Coordinate],
    trip_type: TripType,
) -> dict[str, Any]:
    """Requests directions and returns the first GeoJSON feature.

    The first request asks to avoid ferries. Some profiles reject that option
    with HTTP 400; in that case the request is sent once more without it.
    """
    url = (
        f"{settings.ors_base_url}/v2/directions/"
        f"{ROUTING_PROFILES[trip_type]}/geojson"
    )
    headers = ors_headers(settings)
    base_body = {
        "coordinates": [[c.lng, c.lat] for c in coordinates],
        "instructions": True,
        "elevation": True,
        "extra_info": _EXTRA_INFO,
        "geometry_simplify": False,
    }

    try:
        response = await http_client.post(
            url,
            json={**base_body, "options": _AVOID_OPTIONS},
            headers=headers,
            timeout=settings.directions_timeout_s,
        )
        if _is_unknown_option_error(response):
            logger.info("Directions API rejected avoid_features; retrying without")
            response = await http_client.post(
                url,
                json=base_body,
                headers=headers,
                timeout=settings.directions_timeout_s,
            )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Directions API returned HTTP %s: %s",
            exc.response.status_code,
            exc.response.text[:300],
        )
        raise DirectionsServiceError(
            f"Directions API returned HTTP {exc.response.status_code}: "
            f"{_error_message(exc.response) or 'no details'}"
        ) from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Directions API error: %s", exc)
        raise DirectionsServiceError(f"Directions API error: {exc}") from exc

    return _first_feature(data)


def _first_feature(data: Any) -> dict[str, Any]:
    """Returns the first feature once its geometry is a list of positions.

    Raises:
        DirectionsServiceError: If there is no feature or its shape is wrong.
    """
    features = data.get("features") if isinstance(data, dict) else None
    if not isinstance(features, list) or not features:
        raise DirectionsServiceError("No route found")
    feature = features[0]
    if not isinstance(feature, dict):
        raise DirectionsServiceError("Malformed route feature")
    geometry = feature.get("geometry")
    coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not coords:
        raise DirectionsServiceError("Route geometry is empty")
    if not isinstance(coords, list) or not all(_is_position(c) for c in coords):
        raise DirectionsServiceError("Route geometry has malformed vertices")
    return feature


def _is_position(vertex: Any) -> bool:
    """True for a GeoJSON position: at least [lng, lat], both real numbers."""
    return (
        isinstance(vertex, list)
        and len(vertex) >= 2
        and all(
            isinstance(v, (int, float)) and not isinstance(v, bool)
            for v in vertex[:2]
        )
    )


def _error_message(response: httpx.Response) -> str:
    """Returns ``error.message`` from an OpenRouteService error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    if isinstance(error, str):
        return error
    return ""


def _is_unknown_option_error(response: httpx.Response) -> bool:
    return response.status_code == 400 and bool(
        _UNKNOWN_OPTION_RE.search(_error_message(response))
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def split_index(cumulative: list[float]) -> int:
    """Returns the index of the first vertex at or past half the path length.

    Falls back to the middle vertex when none qualifies. Never returns 0 so
    the first day always has a segment, and never runs past the last vertex.
    """
    if len(cumulative) < 2:
        return 0
    half = cumulative[-1] / 2
    index = next(
        (i for i, d in enumerate(cumulative) if d >= half),
        len(cumulative) // 2,
    )
    return min(max(1, index), len(cumulative) - 1)


def assemble_route(feature: dict[str, Any], trip_type: TripType) -> RouteResult:
    """Builds the day-partitioned ``RouteResult`` from a directions feature.

    Per-day distance, duration and elevation are the service totals split by
    each day's share of the path length; elevation is not recomputed from
    per-segment data. Cycling routes always have two days; a path too short
    to split puts everything on day 1 and leaves day 2 empty.
    """
    geometry = feature.get("geometry") or {}
    properties = _as_dict(feature.get("properties"))
    summary = _as_dict(properties.get("summary"))

    path = [
        Coordinate(lat=c[1], lng=c[0]) for c in geometry.get("coordinates") or []
    ]
    cumulative = cumulative_distances_m(path)
    geometric_m = cumulative[-1] if cumulative else 0.0

    total_m = float(summary.get("distance") or geometric_m)
    total_s = float(summary.get("duration") or 0.0)
    ascent = float(properties.get("ascent") or 0.0)
    descent = float(properties.get("descent") or 0.0)

    day_count = DAY_COUNTS[trip_type]
    splittable = day_count > 1 and len(path) > 1
    split = split_index(cumulative) if splittable else len(path)

    points = [
        RoutePoint(
            lat=coord.lat,
            lng=coord.lng,
            day=1 if i <= split else 2,
            order=i,
        )
        for i, coord in enumerate(path)
    ]

    day1_frac = 1.0
    if splittable and geometric_m > 0:
        day1_frac = max(0.0, min(1.0, cumulative[split] / geometric_m))
    fractions = [day1_frac, 1.0 - day1_frac][:day_count]

    daily_routes = [
        DailyRoute(
            day=day,
            distance_km=total_m * frac / 1000,
            duration_hours=total_s * frac / 3600,
            elevation=Elevation(gain=ascent * frac, loss=descent * frac),
            points=[p for p in points if p.day == day],
        )
        for day, frac in enumerate(fractions, start=1)
    ]

    return RouteResult(
        geometry=geometry,
        points=points,
        daily_routes=daily_routes,
        total_distance_km=total_m / 1000,
        total_duration_hours=total_s / 3600,
        total_elevation=Elevation(gain=ascent, loss=descent),
    )


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
