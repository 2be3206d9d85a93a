"""Provider registry - maps provider ids stored on LLM nodes to live providers."""

import logging

from agentflow.errors import ProviderNotFoundError
from agentflow.llm.provider import GenerateRequest, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class LLMProviderRegistry:
    """
    Routes generate() calls to registered providers.

    Example:
        registry = LLMProviderRegistry()
        registry.register("openai-main", LiteLLMProvider(model="gpt-4o-mini"))
        response = await registry.generate("openai-main", GenerateRequest(messages=[...]))
    """

    def __init__(self) -> None:
        self._providers: dict[str, LLMProvider] = {}

    def register(self, provider_id: str, provider: LLMProvider) -> None:
        if provider_id in self._providers:
            logger.warning(f"⚠ Replacing LLM provider '{provider_id}'")
        self._providers[provider_id] = provider

    def unregister(self, provider_id: str) -> None:
        self._providers.pop(provider_id, None)

    def get(self, provider_id: str) -> LLMProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(f"LLM provider not found: {provider_id}")
        return provider

    def list_providers(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    async def generate(self, provider_id: str, request: GenerateRequest) -> LLMResponse:
        provider = self.get(provider_id)
        logger.debug(
            f"LLM call → {provider_id} ({len(request.messages)} messages, "
            f"temperature={request.temperature}, max_tokens={request.max_tokens})"
        )
        return await provider.generate(request)
