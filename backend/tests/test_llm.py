"""Unit tests for llm.py and the credential helpers in config.py.

SDK clients are replaced with mocks so no model is called.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

import llm
from config import Settings
from errors import ConfigurationError


def _anthropic_client(text: str | None) -> MagicMock:
    content = [] if text is None else [SimpleNamespace(text=text)]
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=content))
    return client


def _openai_client(text: str | None) -> MagicMock:
    message = SimpleNamespace(content=text)
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)])
    )
    return client


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_anthropic_generator_passes_system_and_sampling():
    client = _anthropic_client('  {"waypoints": []}\n')
    generator = llm.AnthropicTextGenerator(client, "claude-test")

    text = await generator.complete(
        "Plan a loop", system="Return JSON", temperature=0.1, max_tokens=2000
    )

    assert text == '{"waypoints": []}'
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["system"] == "Return JSON"
    assert kwargs["temperature"] == 0.1
    assert kwargs["max_tokens"] == 2000
    assert kwargs["messages"] == [{"role": "user", "content": "Plan a loop"}]


@pytest.mark.asyncio
async def test_anthropic_generator_empty_response():
    generator = llm.AnthropicTextGenerator(_anthropic_client(None), "claude-test")
    assert await generator.complete(
        "x", system="y", temperature=0.1, max_tokens=10
    ) == ""


@pytest.mark.asyncio
async def test_openai_generator_sends_system_message():
    client = _openai_client("[]")
    generator = llm.OpenAITextGenerator(client, "llama-test")

    text = await generator.complete(
        "Plan a loop", system="Return JSON", temperature=0.1, max_tokens=2000
    )

    assert text == "[]"
    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": "Return JSON"}
    assert messages[1] == {"role": "user", "content": "Plan a loop"}


@pytest.mark.asyncio
async def test_openai_generator_null_content():
    generator = llm.OpenAITextGenerator(_openai_client(None), "llama-test")
    assert await generator.complete(
        "x", system="y", temperature=0.1, max_tokens=10
    ) == ""


# ---------------------------------------------------------------------------
# build_text_generator / Settings
# ---------------------------------------------------------------------------


def test_build_anthropic_generator():
    generator = llm.build_text_generator(Settings(anthropic_api_key="k"))
    assert isinstance(generator, llm.AnthropicTextGenerator)


def test_build_openai_compatible_generator():
    settings = Settings(
        llm_provider="openai",
        llm_model="llama-3.1-8b-instant",
        openai_api_key="k",
        openai_base_url="https://api.groq.com/openai/v1",
    )
    assert isinstance(llm.build_text_generator(settings), llm.OpenAITextGenerator)


def test_build_requires_provider_key():
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
        llm.build_text_generator(Settings())


def test_unknown_provider():
    with pytest.raises(ConfigurationError, match="LLM_PROVIDER"):
        llm.build_text_generator(Settings(llm_provider="mystery"))


def test_settings_from_env(monkeypatch):
    monkeypatch.setattr("config.load_dotenv", lambda: False)
    monkeypatch.setenv("LLM_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENROUTESERVICE_API_KEY", "ors")
    monkeypatch.setenv("ROUTE_RETRY_DELAY_S", "0.5")
    monkeypatch.delenv("LLM_MODEL", raising=False)

    settings = Settings.from_env()

    assert settings.llm_provider == "openai"
    assert settings.llm_model == "llama-3.1-8b-instant"
    assert settings.require("openrouteservice_api_key") == "ors"
    assert settings.route_retry_delay_s == 0.5
