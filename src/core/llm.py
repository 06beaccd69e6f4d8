"""
HomeOps Assistant — LLM Provider Abstraction.

`LLMClient.complete()` routes a system prompt + user message to the
configured provider and returns the raw response text.
Supports: openai (default), gemini, anthropic, cohere.

The client is an explicit object owned by the process that builds it, so
tests and the bot can each hold their own.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# (api_key, model, system, user_message, max_tokens, temperature, timeout) -> text
_ProviderFn = Callable[[str, str, str, str, int, float, float], Awaitable[str]]

# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_openai(
    api_key: str, model: str, system: str, user_message: str,
    max_tokens: int, temperature: float, timeout: float,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content


async def _complete_gemini(
    api_key: str, model: str, system: str, user_message: str,
    max_tokens: int, temperature: float, timeout: float,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=temperature,
            response_mime_type="application/json",
        ),
        request_options={"timeout": timeout},
    )
    return response.text


async def _complete_anthropic(
    api_key: str, model: str, system: str, user_message: str,
    max_tokens: int, temperature: float, timeout: float,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return response.content[0].text


async def _complete_cohere(
    api_key: str, model: str, system: str, user_message: str,
    max_tokens: int, temperature: float, timeout: float,
) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key, timeout=timeout)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.message.content[0].text


_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class LLMClient:
    """A configured provider + model + credential."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str = "",
        timeout: float = 10.0,
    ) -> None:
        provider_name = provider.lower()
        if provider_name not in _PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={provider_name!r}. "
                f"Supported: {', '.join(_PROVIDERS)}"
            )
        self._fn, default_model = _PROVIDERS[provider_name]
        self.provider = provider_name
        self.model = model or default_model
        self.timeout = timeout
        self._api_key = api_key
        logger.info("LLM provider: %s, model: %s", self.provider, self.model)

    @classmethod
    def from_settings(cls) -> LLMClient:
        from src.config import settings

        return cls(
            provider=settings.LLM_PROVIDER,
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    async def complete(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 200,
        temperature: float = 0.2,
    ) -> str:
        """Send a prompt and return the response text.

        Raises on API errors — callers should handle exceptions.
        """
        return await self._fn(
            self._api_key, self.model, system, user_message,
            max_tokens, temperature, self.timeout,
        )
