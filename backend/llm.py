"""Generative text adapters.

The waypoint proposer only needs ``complete(prompt, system, temperature,
max_tokens) -> text``. Two backends implement it:

  AnthropicTextGenerator: Claude via the Messages API (default).
  OpenAITextGenerator: any OpenAI-compatible chat completions endpoint,
    e.g. OpenAI itself or Groq via ``OPENAI_BASE_URL``.
"""

import logging
from typing import Protocol

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from config import Settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        system: str,
        temperature: float,
        max_tokens: int,
    ) -> str: ...


class AnthropicTextGenerator:
    """Runs completions through Claude."""

    def __init__(self, client: AsyncAnthropic, model: str):
        self._client = client
        self._model = model

    async def complete(
        self,
        prompt: str,
        *,
        system: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.content:
            return ""
        return response.content[0].text.strip()


class OpenAITextGenerator:
    """Runs completions through an OpenAI-compatible chat endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def complete(
        self,
        prompt: str,
        *,
        system: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()


def build_text_generator(settings: Settings) -> TextGenerator:
    """Creates the text generator selected by ``settings.llm_provider``.

    Raises:
        ConfigurationError: If the provider is unknown or its key is missing.
    """
    api_key = settings.require(settings.llm_key_field())
    logger.info(
        "Using %s text generator with model %s",
        settings.llm_provider,
        settings.llm_model,
    )
    if settings.llm_provider == "anthropic":
        return AnthropicTextGenerator(
            AsyncAnthropic(api_key=api_key, timeout=settings.llm_timeout_s),
            settings.llm_model,
        )
    return OpenAITextGenerator(
        AsyncOpenAI(
            api_key=api_key,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout_s,
        ),
        settings.llm_model,
    )
