"""LiteLLM-backed provider. Any model string LiteLLM understands works here."""

import logging
import os
from typing import Any

import litellm

from agentflow.llm.provider import GenerateRequest, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class LiteLLMProvider(LLMProvider):
    """
    Provider that calls ``litellm.acompletion``.

    Example:
        provider = LiteLLMProvider(model="claude-haiku-4-5-20251001")
        provider = LiteLLMProvider(model="gpt-4o-mini", api_key=os.environ["OPENAI_API_KEY"])
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        api_key_env: str | None = None,
        **extra_kwargs: Any,
    ):
        """
        Args:
            model: LiteLLM model string
            api_key: Explicit API key. Falls back to ``api_key_env``, then to
                LiteLLM's own environment lookup.
            api_base: Override endpoint (self-hosted or proxy deployments)
            api_key_env: Name of an environment variable holding the key
            **extra_kwargs: Passed through to every acompletion call
        """
        self.model = model
        self.api_key = api_key or (os.environ.get(api_key_env) if api_key_env else None)
        self.api_base = api_base
        self.extra_kwargs = extra_kwargs

    async def generate(self, request: GenerateRequest) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": request.messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            **self.extra_kwargs,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        response = await litellm.acompletion(**kwargs)

        text = response.choices[0].message.content or ""
        usage: dict[str, int] = {}
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = {
                "prompt_tokens": getattr(raw_usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(raw_usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(raw_usage, "total_tokens", 0) or 0,
            }
        logger.debug(f"✓ {self.model} responded ({usage.get('total_tokens', 0)} tokens)")
        return LLMResponse(
            text=text,
            usage=usage,
            model=getattr(response, "model", None) or self.model,
            raw_response=response,
        )
