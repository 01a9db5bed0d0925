"""LLM-driven waypoint proposal.

The model is asked for 8–15 named waypoints around the requested location.
Its answer is untrusted text, so it goes through three stages before anything
downstream sees it:

  1.  JSON extraction: whole text, then the outermost ``{...}`` block, then a
      cleaned copy with markdown fences and trailing commas removed.
  2.  Parse boundary: the payload must hold a list of waypoints whose
      lat/lng are real JSON numbers.
  3.  Shape validation: enough points, inside lat/lng bounds, not the (0,0)
      placeholder, and not laid out along a straight line.

Stages 1–2 are retried inside ``propose``; stage 3 is left to the caller,
which regenerates with a stronger prompt.
"""

import asyncio
import json
import logging
import math
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from errors import ProposalParseError
from geometry import is_straight_line
from llm import TextGenerator
from models import TripType, Waypoint

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Proposal rules
# ---------------------------------------------------------------------------

# Generation attempts per propose() call, independent of the outer retry loop.
PROPOSAL_ATTEMPTS: int = 3
# Low temperature keeps the JSON shape consistent.
PROPOSAL_TEMPERATURE: float = 0.1
PROPOSAL_MAX_TOKENS: int = 2000

MIN_WAYPOINTS: int = 3
# Points with both |lat| and |lng| below this are the model's (0,0) filler.
PLACEHOLDER_RADIUS_DEG: float = 0.5

_JSON_SYSTEM_PROMPT = (
    "You are a JSON-only response assistant. Always respond with valid JSON "
    "only, no explanations, no markdown."
)

_TRIP_REQUIREMENTS: dict[TripType, str] = {
    TripType.CYCLING: "2-day loop route, 40-80 km total distance",
    TripType.HIKING: "1-day circular route, 5-15 km total distance",
}

_STOP_IDEAS: dict[TripType, str] = {
    TripType.CYCLING: "landmarks, intersections, parks, viewpoints, rest stops",
    TripType.HIKING: "trailheads, viewpoints, rest areas, landmarks, scenic points",
}

_SHAPE_EXAMPLES = """\
GOOD waypoints (spread out, every step changes lat and lng by a different amount):
{
  "waypoints": [
    {"lat": 41.3851, "lng": 2.1734, "name": "Start - Montjuic Hill"},
    {"lat": 41.3942, "lng": 2.1790, "name": "Mirador de l'Alcalde"},
    {"lat": 41.4013, "lng": 2.1702, "name": "Jardins de Laribal"},
    {"lat": 41.4145, "lng": 2.1527, "name": "Park Guell Viewpoint"},
    {"lat": 41.4036, "lng": 2.1414, "name": "Turo del Putxet"},
    {"lat": 41.3890, "lng": 2.1490, "name": "Return - City Centre"}
  ]
}

BAD waypoints (a straight line, FORBIDDEN):
{
  "waypoints": [
    {"lat": 41.3851, "lng": 2.1734, "name": "Start"},
    {"lat": 41.3861, "lng": 2.1744, "name": "Point 2"},
    {"lat": 41.3871, "lng": 2.1754, "name": "Point 3"}
  ]
}"""

_PROPOSAL_PROMPT = """\
You are a travel route planner. Generate waypoints for a {trip_type} route \
around {location}.
{warning}
Plan a realistic journey of 8-15 waypoints. Each waypoint is a meaningful \
stop: {stop_ideas}.

{examples}

RULES:
- Generate 8-15 waypoints, in travel order.
- Spread the waypoints across the area. They must NOT form a straight line.
- Consecutive waypoints must differ by uneven lat/lng amounts; never use \
uniform increments.
- Every waypoint must sit on an accessible street, road or trail. Never place \
one in a lake, river, sea or building.
- Trip: {requirements}.
- Coordinates must be JSON numbers, not strings.

Return ONLY this JSON structure:
{{"waypoints": [{{"lat": <number>, "lng": <number>, "name": <string>}}, ...]}}
"""

_RETRY_WARNING = """
CRITICAL WARNING: your previous attempt put the waypoints in a STRAIGHT LINE. \
That is FORBIDDEN. This time the waypoints MUST change direction repeatedly \
and cover the area like a loop, as in the GOOD example below. Compare your \
answer against the BAD example before replying.
"""

_FIRST_WARNING = """
IMPORTANT: the waypoints must be SPREAD OUT and must NOT lie in a straight line.
"""

_WAYPOINT_LIST = TypeAdapter(list[Waypoint])

_FENCE_RE = re.compile(r"```(?:json)?\s*")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(location: str, trip_type: TripType, is_retry: bool) -> str:
    """Returns the waypoint request, strengthened when ``is_retry`` is set."""
    return _PROPOSAL_PROMPT.format(
        trip_type=trip_type.value,
        location=location,
        warning=_RETRY_WARNING if is_retry else _FIRST_WARNING,
        stop_ideas=_STOP_IDEAS[trip_type],
        examples=_SHAPE_EXAMPLES,
        requirements=_TRIP_REQUIREMENTS[trip_type],
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_json(text: str) -> Any:
    """Extracts a JSON value from model output that may carry extra text.

    Tries, in order: the whole string; the outermost ``{...}`` block; the
    whole string with markdown fences and trailing commas stripped.

    Raises:
        ProposalParseError: If no stage yields valid JSON.
    """
    text = text.strip()
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Direct JSON parse failed; trying object extraction")

    match = _OBJECT_RE.search(text)
    if match:
        try:
            return json.loads(match.group())
        except ValueError:
            logger.debug("Object extraction failed; trying cleanup")

    cleaned = _FENCE_RE.sub("", text)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    try:
        return json.loads(cleaned)
    except ValueError as exc:
        raise ProposalParseError(
            f"Could not extract JSON from model output: {text[:200]!r}"
        ) from exc


def parse_waypoints(text: str) -> list[Waypoint]:
    """Turns raw model output into typed waypoints.

    Accepts ``{"waypoints": [...]}`` or a bare list. Geometry is not checked
    here; see ``waypoint_issues``.

    Raises:
        ProposalParseError: If the text is not JSON or not waypoint-shaped.
    """
    payload = extract_json(text)
    if isinstance(payload, dict):
        payload = payload.get("waypoints")
    if not isinstance(payload, list):
        raise ProposalParseError("Model output has no 'waypoints' list.")
    try:
        return _WAYPOINT_LIST.validate_python(payload)
    except ValidationError as exc:
        raise ProposalParseError(f"Malformed waypoint entries: {exc}") from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def waypoint_issues(waypoints: list[Waypoint] | None) -> list[str]:
    """Checks proposed waypoints for a usable shape.

    Returns:
        A list of human-readable issue descriptions. Empty = valid.
    """
    if not waypoints or len(waypoints) < MIN_WAYPOINTS:
        count = len(waypoints) if waypoints else 0
        return [f"Need at least {MIN_WAYPOINTS} waypoints, got {count}."]

    issues: list[str] = []
    for index, wp in enumerate(waypoints):
        if not (math.isfinite(wp.lat) and math.isfinite(wp.lng)):
            issues.append(f"Waypoint {index} has non-numeric coordinates.")
        elif abs(wp.lat) > 90 or abs(wp.lng) > 180:
            issues.append(
                f"Waypoint {index} is out of bounds ({wp.lat}, {wp.lng})."
            )
        elif (
            abs(wp.lat) < PLACEHOLDER_RADIUS_DEG
            and abs(wp.lng) < PLACEHOLDER_RADIUS_DEG
        ):
            issues.append(f"Waypoint {index} is a (0,0) placeholder.")
    if issues:
        return issues

    if is_straight_line(waypoints):
        issues.append("Waypoints lie in a straight line.")
    return issues


def is_waypoints_valid(waypoints: list[Waypoint] | None) -> bool:
    return not waypoint_issues(waypoints)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


async def propose(
    generator: TextGenerator,
    location: str,
    trip_type: TripType,
    *,
    is_retry: bool = False,
    attempts: int = PROPOSAL_ATTEMPTS,
    retry_delay_s: float = 1.0,
) -> list[Waypoint] | None:
    """Asks the model for waypoints around ``location``.

    Generation errors, empty answers and unparseable answers are retried up to
    ``attempts`` times with a fixed delay. The returned waypoints are parsed
    but not shape-validated.

    Args:
        generator: Text generation backend.
        location: Free-text place name, e.g. "Barcelona, Spain".
        trip_type: Hiking or cycling.
        is_retry: Use the strengthened anti-straight-line prompt.
        attempts: Generation attempts before giving up.
        retry_delay_s: Seconds to wait between attempts.

    Returns:
        Parsed waypoints, or ``None`` when every attempt failed.
    """
    prompt = build_prompt(location, trip_type, is_retry)

    for attempt in range(1, attempts + 1):
        logger.info(
            "Waypoint proposal attempt %d/%d for %s (%s)",
            attempt, attempts, location, trip_type.value,
        )
        try:
            text = await generator.complete(
                prompt,
                system=_JSON_SYSTEM_PROMPT,
                temperature=PROPOSAL_TEMPERATURE,
                max_tokens=PROPOSAL_MAX_TOKENS,
            )
            if not text:
                raise ProposalParseError("Empty response from model.")
            logger.info("Model waypoint response: %s", text[:300])
            waypoints = parse_waypoints(text)
            logger.info("Parsed %d waypoints", len(waypoints))
            return waypoints
        except ProposalParseError as exc:
            logger.warning("Attempt %d: %s", attempt, exc)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Attempt %d: text generation failed: %s", attempt, exc)

        if attempt < attempts:
            await asyncio.sleep(retry_delay_s)

    logger.error(
        "All %d waypoint proposal attempts failed for %s (%s)",
        attempts, location, trip_type.value,
    )
    return None
