"""Process-wide configuration, read once from the environment at startup."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from errors import ConfigurationError

# Default model per LLM provider. The OpenAI-compatible default targets Groq.
DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-6",
    "openai": "llama-3.1-8b-instant",
}

# Maps each settings field that holds a credential to its env var name, so
# error messages point at what the operator actually has to set.
_ENV_NAMES: dict[str, str] = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "openai_api_key": "OPENAI_API_KEY",
    "openrouteservice_api_key": "OPENROUTESERVICE_API_KEY",
    "weather_api_key": "WEATHER_API_KEY",
}


class Settings(BaseModel):
    """Immutable service configuration injected into every component."""

    model_config = ConfigDict(frozen=True)

    llm_provider: str = "anthropic"
    llm_model: str = DEFAULT_MODELS["anthropic"]
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str | None = None

    openrouteservice_api_key: str = ""
    ors_base_url: str = "https://api.openrouteservice.org"

    weather_api_key: str = ""
    weather_base_url: str = "https://api.openweathermap.org"

    # Timeouts in seconds for each upstream service.
    llm_timeout_s: float = 60.0
    snap_timeout_s: float = 20.0
    directions_timeout_s: float = 30.0
    weather_timeout_s: float = 15.0

    # Fixed delays between retries.
    route_retry_delay_s: float = 1.0
    proposal_retry_delay_s: float = 1.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Builds settings from environment variables (and a ``.env`` file)."""
        load_dotenv()
        provider = os.environ.get("LLM_PROVIDER", "anthropic").strip().lower()
        return cls(
            llm_provider=provider,
            llm_model=os.environ.get(
                "LLM_MODEL", DEFAULT_MODELS.get(provider, DEFAULT_MODELS["anthropic"])
            ),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
            openrouteservice_api_key=os.environ.get("OPENROUTESERVICE_API_KEY", ""),
            ors_base_url=os.environ.get(
                "ORS_BASE_URL", "https://api.openrouteservice.org"
            ),
            weather_api_key=os.environ.get("WEATHER_API_KEY", ""),
            weather_base_url=os.environ.get(
                "WEATHER_BASE_URL", "https://api.openweathermap.org"
            ),
            llm_timeout_s=float(os.environ.get("LLM_TIMEOUT_S", "60")),
            snap_timeout_s=float(os.environ.get("SNAP_TIMEOUT_S", "20")),
            directions_timeout_s=float(os.environ.get("DIRECTIONS_TIMEOUT_S", "30")),
            weather_timeout_s=float(os.environ.get("WEATHER_TIMEOUT_S", "15")),
            route_retry_delay_s=float(os.environ.get("ROUTE_RETRY_DELAY_S", "1.0")),
            proposal_retry_delay_s=float(
                os.environ.get("PROPOSAL_RETRY_DELAY_S", "1.0")
            ),
        )

    def require(self, field: str) -> str:
        """Returns the named credential, or raises if it is not configured.

        Raises:
            ConfigurationError: If the value is empty.
        """
        value = getattr(self, field)
        if not value:
            env_name = _ENV_NAMES.get(field, field.upper())
            raise ConfigurationError(f"{env_name} is not configured.")
        return value

    def llm_key_field(self) -> str:
        """Returns the settings field holding the active provider's API key."""
        if self.llm_provider == "anthropic":
            return "anthropic_api_key"
        if self.llm_provider == "openai":
            return "openai_api_key"
        raise ConfigurationError(
            f"Unsupported LLM_PROVIDER {self.llm_provider!r}; "
            "expected 'anthropic' or 'openai'."
        )
