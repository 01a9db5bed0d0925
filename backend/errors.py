"""Exception hierarchy for the trip-planning backend.

Every failure the pipeline can surface derives from ``TripPlanningError`` so
the HTTP layer can map them to status codes in one place.
"""


class TripPlanningError(Exception):
    """Base class for all trip-planning failures."""


class ConfigurationError(TripPlanningError):
    """A required credential or setting is missing."""


# ---------------------------------------------------------------------------
# Waypoint proposal
# ---------------------------------------------------------------------------


class ProposalParseError(TripPlanningError):
    """The model answered but the text could not be coerced into waypoints."""


class ProposalShapeError(TripPlanningError):
    """Waypoints parsed fine but are geometrically unusable."""

    def __init__(self, issues: list[str]):
        super().__init__("; ".join(issues) or "invalid waypoints")
        self.issues = issues


# ---------------------------------------------------------------------------
# Route synthesis
# ---------------------------------------------------------------------------


class SynthesisError(TripPlanningError):
    """Turning validated waypoints into a routed path failed."""


class SnapFailure(SynthesisError):
    """One or more waypoints could not be matched to the path network."""


class DirectionsServiceError(SynthesisError):
    """The directions service found no route or returned an error."""


class ExhaustedRetries(TripPlanningError):
    """Every route generation attempt failed."""

    def __init__(self, attempts: int, last_cause: Exception | None):
        message = f"Route generation failed after {attempts} attempts"
        if last_cause is not None:
            message += f": {last_cause}"
        super().__init__(message)
        self.attempts = attempts
        self.last_cause = last_cause


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class WeatherServiceError(TripPlanningError):
    """The weather provider failed or rejected the request."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class LocationNotFound(WeatherServiceError):
    """The geocoder has no match for the requested place name."""

    def __init__(self, location: str):
        super().__init__(f"Location not found: {location!r}", status_code=404)


class RouteNotFound(TripPlanningError):
    """No saved route has the requested id."""


class RouteAccessDenied(TripPlanningError):
    """The saved route belongs to another user."""
