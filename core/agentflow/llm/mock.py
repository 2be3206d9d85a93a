"""Mock LLM provider for tests and offline runs."""

from collections.abc import Callable
from typing import Any

from agentflow.llm.provider import GenerateRequest, LLMProvider, LLMResponse


class MockLLMProvider(LLMProvider):
    """
    Returns canned responses and records every request.

    ``responses`` can be a single string (always returned), a list (returned in
    order, the last one repeating), or a callable taking the request.
    With no responses configured the last user message is echoed back.
    """

    def __init__(
        self,
        responses: str | list[str] | Callable[[GenerateRequest], str] | None = None,
        model: str = "mock",
        error: Exception | None = None,
    ):
        self.responses = responses
        self.model = model
        self.error = error
        self.requests: list[GenerateRequest] = []

    def _next_text(self, request: GenerateRequest) -> str:
        if callable(self.responses):
            return self.responses(request)
        if isinstance(self.responses, str):
            return self.responses
        if self.responses:
            index = min(len(self.requests) - 1, len(self.responses) - 1)
            return self.responses[index]
        user_messages = [m["content"] for m in request.messages if m.get("role") == "user"]
        return user_messages[-1] if user_messages else ""

    async def generate(self, request: GenerateRequest) -> LLMResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        text = self._next_text(request)
        prompt_tokens = sum(len(m.get("content", "").split()) for m in request.messages)
        completion_tokens = len(text.split())
        usage: dict[str, Any] = {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        }
        return LLMResponse(text=text, usage=usage, model=self.model)
