"""Distance and shape helpers over lat/lng sequences."""

import math
from typing import Protocol, Sequence

EARTH_RADIUS_M: float = 6_371_000

# A vertex whose angle between neighbours exceeds this counts as "straight".
STRAIGHT_ANGLE_DEG: float = 170.0
# A path is a straight line when more than this share of its angles is straight.
STRAIGHT_FRACTION_LIMIT: float = 0.7


class HasLatLng(Protocol):
    lat: float
    lng: float


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Returns the great-circle distance in metres between two points.

    Symmetric in its arguments, exactly 0 for identical points and never NaN
    for near-identical or antipodal ones.
    """
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(abs(lat2 - lat1))
    dlng = math.radians(abs(lng2 - lng1))
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def distance_m(a: HasLatLng, b: HasLatLng) -> float:
    """Haversine distance in metres between two objects with lat/lng."""
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def cumulative_distances_m(points: Sequence[HasLatLng]) -> list[float]:
    """Returns the running along-path distance at each point, starting at 0."""
    if not points:
        return []
    cumulative = [0.0]
    for prev, curr in zip(points, points[1:]):
        cumulative.append(cumulative[-1] + distance_m(prev, curr))
    return cumulative


def is_straight_line(points: Sequence[HasLatLng]) -> bool:
    """Returns True if the points are (mostly) laid out along a line.

    At every interior point, measures the angle between the vectors to its
    previous and next neighbours in raw lat/lng space. This is only a shape
    heuristic for small areas, so no projection is applied. Duplicate
    neighbours are skipped.
    """
    if len(points) < 3:
        return False

    straight = 0
    total = 0
    for prev, curr, nxt in zip(points, points[1:], points[2:]):
        back = (prev.lat - curr.lat, prev.lng - curr.lng)
        ahead = (nxt.lat - curr.lat, nxt.lng - curr.lng)
        len_back = math.hypot(*back)
        len_ahead = math.hypot(*ahead)
        if len_back == 0 or len_ahead == 0:
            continue

        cos_theta = (back[0] * ahead[0] + back[1] * ahead[1]) / (
            len_back * len_ahead
        )
        angle = math.degrees(math.acos(max(-1.0, min(1.0, cos_theta))))
        total += 1
        if angle > STRAIGHT_ANGLE_DEG:
            straight += 1

    return total > 0 and straight / total > STRAIGHT_FRACTION_LIMIT
