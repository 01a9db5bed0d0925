"""In-memory store for saved routes, scoped per user."""

import logging
import uuid
from datetime import datetime, timezone

from errors import RouteAccessDenied, RouteNotFound
from models import (
    RouteCreate,
    RouteDetail,
    RouteStats,
    RouteSummary,
    RouteUpdate,
    StoredRoute,
    TripType,
)

logger = logging.getLogger(__name__)

# Fields a partial update may clear by sending null.
_NULLABLE_FIELDS = frozenset({"description", "image", "rating", "notes"})


def format_distance(distance_km: float) -> str:
    return f"{distance_km:.1f} km"


def format_duration(duration_hours: float) -> str:
    """Formats fractional hours as e.g. ``"3h 15m"``."""
    hours = int(duration_hours)
    minutes = round((duration_hours - hours) * 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    return f"{hours}h {minutes}m"


def to_summary(route: StoredRoute) -> RouteSummary:
    data = route.route_data
    return RouteSummary(
        id=route.id,
        name=route.name,
        description=route.description,
        trip_type=route.trip_type,
        location=route.location,
        total_distance_km=data.total_distance_km,
        total_duration_hours=data.total_duration_hours,
        formatted_distance=format_distance(data.total_distance_km),
        formatted_duration=format_duration(data.total_duration_hours),
        image=route.image,
        status=route.status,
        created_at=route.created_at,
        weather=route.weather,
    )


def to_detail(route: StoredRoute) -> RouteDetail:
    return RouteDetail.model_validate(route.model_dump(exclude={"user_id"}))


class RouteStore:
    """Holds saved routes for the lifetime of the process."""

    def __init__(self) -> None:
        self._routes: dict[str, StoredRoute] = {}

    def create(self, user_id: str, payload: RouteCreate) -> StoredRoute:
        now = datetime.now(timezone.utc)
        route = StoredRoute(
            id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        self._routes[route.id] = route
        logger.info("Saved route %s for user %s", route.id, user_id)
        return route

    def get(self, user_id: str, route_id: str) -> StoredRoute:
        """Returns the route if it exists and belongs to ``user_id``.

        Raises:
            RouteNotFound: If no route has this id.
            RouteAccessDenied: If the route belongs to another user.
        """
        route = self._routes.get(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        if route.user_id != user_id:
            raise RouteAccessDenied(route_id)
        return route

    def list_routes(
        self, user_id: str, trip_type: TripType | None = None
    ) -> list[StoredRoute]:
        """Returns the user's routes, newest first."""
        # Reversed insertion order breaks created_at ties newest-first too.
        routes = [
            r
            for r in reversed(self._routes.values())
            if r.user_id == user_id and (trip_type is None or r.trip_type == trip_type)
        ]
        return sorted(routes, key=lambda r: r.created_at, reverse=True)

    def update(self, user_id: str, route_id: str, changes: RouteUpdate) -> StoredRoute:
        """Applies only the fields that were set on ``changes``."""
        route = self.get(user_id, route_id)
        fields = [
            name
            for name in changes.model_dump(exclude_unset=True)
            if name in _NULLABLE_FIELDS or getattr(changes, name) is not None
        ]
        updated = route.model_copy(
            update={
                **{name: getattr(changes, name) for name in fields},
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._routes[route_id] = updated
        logger.info("Updated route %s (%s)", route_id, ", ".join(sorted(fields)))
        return updated

    def delete(self, user_id: str, route_id: str) -> None:
        self.get(user_id, route_id)
        del self._routes[route_id]
        logger.info("Deleted route %s", route_id)

    def stats(self, user_id: str) -> RouteStats:
        routes = self.list_routes(user_id)
        if not routes:
            return RouteStats()
        total_distance = sum(r.route_data.total_distance_km for r in routes)
        total_duration = sum(r.route_data.total_duration_hours for r in routes)
        return RouteStats(
            total_routes=len(routes),
            hiking_routes=sum(1 for r in routes if r.trip_type is TripType.HIKING),
            cycling_routes=sum(1 for r in routes if r.trip_type is TripType.CYCLING),
            total_distance_km=total_distance,
            total_duration_hours=total_duration,
            average_distance_km=total_distance / len(routes),
            average_duration_hours=total_duration / len(routes),
        )
