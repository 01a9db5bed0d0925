"""Snaps proposed waypoints onto the road/trail network.

Uses the OpenRouteService snap endpoint with all waypoints in one request. The
batch is all-or-nothing: one unsnappable point (over water, off network) means
the proposal is unreliable and has to be regenerated, so partial results are
never returned and the original coordinates are never used as a fallback.
"""

import logging

import httpx

from config import Settings
from errors import SnapFailure
from models import Coordinate, TripType, Waypoint

logger = logging.getLogger(__name__)

# OpenRouteService profile per activity.
ROUTING_PROFILES: dict[TripType, str] = {
    TripType.CYCLING: "cycling-regular",
    TripType.HIKING: "foot-hiking",
}

# Search radius in metres. Roads are mapped precisely, trails less so.
SNAP_RADIUS_M: dict[TripType, int] = {
    TripType.CYCLING: 120,
    TripType.HIKING: 200,
}


def ors_headers(settings: Settings) -> dict[str, str]:
    """Returns the request headers for OpenRouteService calls."""
    return {
        "Authorization": settings.require("openrouteservice_api_key"),
        "Content-Type": "application/json",
        "Accept": "application/json, application/geo+json",
    }


async def snap_waypoints(
    http_client: httpx.AsyncClient,
    settings: Settings,
    waypoints: list[Waypoint],
    trip_type: TripType,
) -> list[Coordinate]:
    """Returns the network position of every waypoint, in input order.

    Raises:
        SnapFailure: If any waypoint fails to snap or the service errors.
        ConfigurationError: If the OpenRouteService key is missing.
    """
    profile = ROUTING_PROFILES[trip_type]
    headers = ors_headers(settings)
    locations = [[wp.lng, wp.lat] for wp in waypoints]

    try:
        response = await http_client.post(
            f"{settings.ors_base_url}/v2/snap/{profile}/json",
            json={"locations": locations, "radius": SNAP_RADIUS_M[trip_type]},
            headers=headers,
            timeout=settings.snap_timeout_s,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Snap API returned HTTP %s: %s",
            exc.response.status_code,
            exc.response.text[:300],
        )
        raise SnapFailure("Snap failed") from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Snap API error: %s", exc)
        raise SnapFailure("Snap failed") from exc

    snapped = _read_snapped_locations(data)
    if len(snapped) != len(locations) or any(p is None for p in snapped):
        missing = sum(1 for p in snapped if p is None) + max(
            0, len(locations) - len(snapped)
        )
        logger.warning(
            "%d of %d waypoints failed to snap (off network or over water)",
            missing,
            len(locations),
        )
        raise SnapFailure("Snap failed: some waypoints could not be snapped")

    logger.info("Snapped %d waypoints to the %s network", len(snapped), profile)
    return snapped


def _read_snapped_locations(data: object) -> list[Coordinate | None]:
    """Reads ``locations[i].location`` as coordinates, ``None`` where absent."""
    if not isinstance(data, dict) or not isinstance(data.get("locations"), list):
        return []

    snapped: list[Coordinate | None] = []
    for item in data["locations"]:
        location = item.get("location") if isinstance(item, dict) else None
        if not isinstance(location, list) or len(location) < 2:
            snapped.append(None)
            continue
        try:
            snapped.append(Coordinate(lat=location[1], lng=location[0]))
        except ValueError:
            snapped.append(None)
    return snapped
