"""LLM Provider abstraction for pluggable LLM backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol

from agentflow.config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE


@dataclass
class GenerateRequest:
    """
    One text-generation call.

    messages: [{"role": "system"|"user"|"assistant", "content": str}]
    """

    messages: list[dict[str, str]]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    text: str
    usage: dict[str, int] = field(default_factory=dict)
    model: str = ""
    raw_response: Any = None


class LLMProvider(ABC):
    """
    Abstract LLM provider - plug in any LLM backend.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Token counting

    Errors are raised, never returned. The engine records them on the step.
    """

    @abstractmethod
    async def generate(self, request: GenerateRequest) -> LLMResponse:
        """
        Generate a completion.

        Args:
            request: Messages plus sampling settings

        Returns:
            LLMResponse with the generated text and token usage
        """
        pass


class LLMGateway(Protocol):
    """What the Step Executor needs: route a request to a provider by id."""

    async def generate(self, provider_id: str, request: GenerateRequest) -> LLMResponse: ...
