"""Hiking and cycling route generation pipeline.

Each attempt runs:
  1.  Proposing: the language model proposes named waypoints around the
      location (``waypoint_proposer``), which must pass shape validation.
  2.  Synthesizing: snap, route and split into days (``route_synthesis``).

Any failure goes to Retry-or-Fail: wait a fixed delay and start over with
freshly generated waypoints and a stronger prompt, up to MAX_ROUTE_ATTEMPTS.
Nothing from a failed attempt is reused. The caller gets either a complete
``RouteResult`` or ``ExhaustedRetries`` wrapping the last cause.
"""

import asyncio
import logging

import httpx

import route_synthesis
import waypoint_proposer
from config import Settings
from errors import (
    ExhaustedRetries,
    ProposalParseError,
    ProposalShapeError,
    SynthesisError,
)
from llm import TextGenerator, build_text_generator
from models import RouteResult, TripType

logger = logging.getLogger(__name__)

# Outer attempts (proposal + synthesis) before the request fails.
MAX_ROUTE_ATTEMPTS: int = 3


async def generate(
    location: str,
    trip_type: TripType,
    *,
    settings: Settings,
    text_generator: TextGenerator | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> RouteResult:
    """Generates a snapped, day-partitioned route around ``location``.

    Args:
        location: Free-text place name passed to the model.
        trip_type: Hiking (1-day loop) or cycling (2-day loop).
        settings: Service configuration.
        text_generator: Optional pre-constructed generator. Built from
            ``settings`` if omitted.
        http_client: Optional shared ``httpx.AsyncClient`` for the routing
            service. A client scoped to this call is created if omitted.

    Returns:
        A fully synthesized ``RouteResult``.

    Raises:
        ExhaustedRetries: If every attempt failed.
        ConfigurationError: If a required credential is missing.
    """
    generator = text_generator or build_text_generator(settings)
    settings.require("openrouteservice_api_key")

    logger.info("Route generation started: %s, %s", location, trip_type.value)

    if http_client is not None:
        return await _run_attempts(location, trip_type, settings, generator, http_client)
    async with httpx.AsyncClient() as client:
        return await _run_attempts(location, trip_type, settings, generator, client)


async def _run_attempts(
    location: str,
    trip_type: TripType,
    settings: Settings,
    generator: TextGenerator,
    http_client: httpx.AsyncClient,
) -> RouteResult:
    last_cause: Exception | None = None

    for attempt in range(1, MAX_ROUTE_ATTEMPTS + 1):
        logger.info("Route attempt %d/%d", attempt, MAX_ROUTE_ATTEMPTS)

        # Proposing
        waypoints = await waypoint_proposer.propose(
            generator,
            location,
            trip_type,
            is_retry=attempt > 1,
            retry_delay_s=settings.proposal_retry_delay_s,
        )
        if waypoints is None:
            last_cause = ProposalParseError("Model did not return usable waypoints.")
        else:
            issues = waypoint_proposer.waypoint_issues(waypoints)
            if issues:
                last_cause = ProposalShapeError(issues)
            else:
                # Synthesizing
                try:
                    result = await route_synthesis.synthesize(
                        http_client, settings, waypoints, trip_type
                    )
                except SynthesisError as exc:
                    last_cause = exc
                else:
                    logger.info("Route generation succeeded on attempt %d", attempt)
                    return result

        # Retry-or-Fail
        logger.warning("Attempt %d failed: %s", attempt, last_cause)
        if attempt < MAX_ROUTE_ATTEMPTS:
            await asyncio.sleep(settings.route_retry_delay_s)

    raise ExhaustedRetries(MAX_ROUTE_ATTEMPTS, last_cause) from last_cause
