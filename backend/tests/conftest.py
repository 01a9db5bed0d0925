"""Pytest configuration for the trail planner backend test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the backend root is on the path so tests can import modules
# directly (e.g. `import route_synthesis`) without a package prefix.
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings with every credential filled in and no retry delays."""
    return Settings(
        anthropic_api_key="test-anthropic-key",
        openrouteservice_api_key="test-ors-key",
        weather_api_key="test-weather-key",
        ors_base_url="https://ors.test",
        weather_base_url="https://weather.test",
        route_retry_delay_s=0,
        proposal_retry_delay_s=0,
    )
