"""Tests for src.core.llm — provider routing (no network calls)."""

from unittest.mock import AsyncMock, patch

import pytest

from src.core.llm import LLMClient


class TestLLMClient:
    def test_default_model_per_provider(self):
        assert LLMClient("openai", "k").model == "gpt-4o-mini"
        assert LLMClient("gemini", "k").model == "gemini-2.0-flash"

    def test_explicit_model(self):
        assert LLMClient("anthropic", "k", model="claude-x").model == "claude-x"

    def test_provider_is_case_insensitive(self):
        assert LLMClient("OpenAI", "k").provider == "openai"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
            LLMClient("mystery", "k")

    def test_from_settings(self):
        client = LLMClient.from_settings()
        assert client.provider == "openai"
        assert client.timeout == 10.0

    @pytest.mark.asyncio
    async def test_complete_routes_to_provider(self):
        fake = AsyncMock(return_value='{"ok": true}')
        with patch.dict("src.core.llm._PROVIDERS", {"openai": (fake, "gpt-4o-mini")}):
            client = LLMClient("openai", "secret", timeout=5.0)
            text = await client.complete(system="sys", user_message="hi", max_tokens=50)
        assert text == '{"ok": true}'
        fake.assert_awaited_once_with("secret", "gpt-4o-mini", "sys", "hi", 50, 0.2, 5.0)

    @pytest.mark.asyncio
    async def test_complete_propagates_errors(self):
        fake = AsyncMock(side_effect=RuntimeError("api down"))
        with patch.dict("src.core.llm._PROVIDERS", {"openai": (fake, "gpt-4o-mini")}):
            client = LLMClient("openai", "secret")
            with pytest.raises(RuntimeError):
                await client.complete(system="sys", user_message="hi")
