"""Tests for LLM providers and the provider registry."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from agentflow.errors import NodeExecutionError, ProviderNotFoundError
from agentflow.llm import GenerateRequest, LiteLLMProvider, LLMProviderRegistry, MockLLMProvider

REQUEST = GenerateRequest(
    messages=[
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "hello there"},
    ]
)


class TestMockProvider:
    @pytest.mark.asyncio
    async def test_echoes_last_user_message(self):
        response = await MockLLMProvider().generate(REQUEST)

        assert response.text == "hello there"
        assert response.usage == {"prompt_tokens": 4, "completion_tokens": 2, "total_tokens": 6}

    @pytest.mark.asyncio
    async def test_list_responses_in_order_then_repeat(self):
        provider = MockLLMProvider(["one", "two"])

        texts = [(await provider.generate(REQUEST)).text for _ in range(3)]

        assert texts == ["one", "two", "two"]
        assert len(provider.requests) == 3

    @pytest.mark.asyncio
    async def test_callable_responses(self):
        provider = MockLLMProvider(lambda req: f"{len(req.messages)} messages")
        assert (await provider.generate(REQUEST)).text == "2 messages"

    @pytest.mark.asyncio
    async def test_configured_error(self):
        provider = MockLLMProvider(error=TimeoutError("slow"))
        with pytest.raises(TimeoutError):
            await provider.generate(REQUEST)
        assert provider.requests == [REQUEST]


class TestRegistry:
    @pytest.mark.asyncio
    async def test_routes_by_provider_id(self):
        registry = LLMProviderRegistry()
        registry.register("a", MockLLMProvider("from a"))
        registry.register("b", MockLLMProvider("from b"))

        assert (await registry.generate("b", REQUEST)).text == "from b"
        assert registry.list_providers() == ["a", "b"]
        assert "a" in registry

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        registry = LLMProviderRegistry()
        with pytest.raises(ProviderNotFoundError, match="LLM provider not found: x"):
            await registry.generate("x", REQUEST)

    def test_provider_not_found_is_a_node_error(self):
        assert issubclass(ProviderNotFoundError, NodeExecutionError)

    def test_unregister(self):
        registry = LLMProviderRegistry()
        registry.register("a", MockLLMProvider())
        registry.unregister("a")
        registry.unregister("a")
        assert "a" not in registry


class TestLiteLLMProvider:
    @pytest.mark.asyncio
    async def test_calls_acompletion(self, monkeypatch):
        monkeypatch.setenv("SUPPORT_LLM_KEY", "sk-test")
        fake = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Hi!"))],
            usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2, total_tokens=7),
            model="gpt-4o-mini-2024",
        )
        provider = LiteLLMProvider(
            "gpt-4o-mini", api_key_env="SUPPORT_LLM_KEY", api_base="http://proxy", timeout=10
        )

        with patch("litellm.acompletion", new=AsyncMock(return_value=fake)) as acompletion:
            response = await provider.generate(
                GenerateRequest(messages=REQUEST.messages, temperature=0.2, max_tokens=64)
            )

        acompletion.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=REQUEST.messages,
            temperature=0.2,
            max_tokens=64,
            timeout=10,
            api_key="sk-test",
            api_base="http://proxy",
        )
        assert response.text == "Hi!"
        assert response.usage == {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}
        assert response.model == "gpt-4o-mini-2024"
        assert response.raw_response is fake

    @pytest.mark.asyncio
    async def test_empty_content_and_no_usage(self):
        fake = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))], usage=None
        )
        provider = LiteLLMProvider("claude-haiku-4-5-20251001")

        with patch("litellm.acompletion", new=AsyncMock(return_value=fake)):
            response = await provider.generate(REQUEST)

        assert response.text == ""
        assert response.usage == {}
        assert response.model == "claude-haiku-4-5-20251001"
