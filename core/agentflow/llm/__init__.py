"""LLM provider abstraction."""

from agentflow.llm.litellm import LiteLLMProvider
from agentflow.llm.mock import MockLLMProvider
from agentflow.llm.provider import GenerateRequest, LLMGateway, LLMProvider, LLMResponse
from agentflow.llm.registry import LLMProviderRegistry

__all__ = [
    "GenerateRequest",
    "LLMGateway",
    "LLMProvider",
    "LLMResponse",
    "LLMProviderRegistry",
    "LiteLLMProvider",
    "MockLLMProvider",
]
