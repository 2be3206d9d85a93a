"""
Step Executor - Runs a single Agent-level node against the current context.

Each node kind maps to one behavior:
- trigger: pass the run input through
- agent (LLM): build messages, call the LLM collaborator
- tool: resolve the input template, call the tool collaborator
- decision: placeholder boolean evaluator
- action / transform: pass-through placeholders
- delay: suspend for a number of milliseconds

Failures raise. The Agent Engine records them on the step and aborts the run.
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any, assert_never

from agentflow.config import EngineConfig
from agentflow.errors import NodeExecutionError, ToolExecutionError
from agentflow.graph.node import (
    ActionNode,
    AgentNode,
    DecisionNode,
    DelayNode,
    LLMNode,
    ToolNode,
    TransformNode,
    TriggerNode,
)
from agentflow.graph.template import resolve, resolve_deep
from agentflow.llm.provider import GenerateRequest, LLMGateway
from agentflow.runner.tool_registry import ToolExecutionContext, ToolExecutor

logger = logging.getLogger(__name__)


def timestamp() -> str:
    return datetime.now(UTC).isoformat()


def envelope(node_type: str, label: str, **payload: Any) -> dict[str, Any]:
    """Common output shape: ``type``, ``label``, the payload, then ``timestamp``."""
    return {"type": node_type, "label": label, **payload, "timestamp": timestamp()}


class StepExecutor:
    """
    Executes Agent-level nodes.

    Example:
        executor = StepExecutor(llm=registry, tools=tool_registry)
        output = await executor.execute(node, {"input": {"message": "hi"}})
    """

    def __init__(
        self,
        llm: LLMGateway | None = None,
        tools: ToolExecutor | None = None,
        config: EngineConfig | None = None,
    ):
        self.llm = llm
        self.tools = tools
        self.config = config or EngineConfig()

    async def execute(self, node: AgentNode, context: dict[str, Any]) -> dict[str, Any]:
        match node:
            case TriggerNode():
                return envelope(node.type, node.label, triggered=True, input=context.get("input"))
            case LLMNode():
                return await self._execute_llm(node, context)
            case ToolNode():
                return await self._execute_tool(node, context)
            case DecisionNode():
                return self._execute_decision(node, context)
            case ActionNode():
                return envelope(node.type, node.label, result=f"Action {node.label} executed")
            case TransformNode():
                return envelope(node.type, node.label, result=dict(context))
            case DelayNode():
                delay_ms = node.config.delay_ms or self.config.default_delay_ms
                await asyncio.sleep(delay_ms / 1000)
                return envelope(node.type, node.label, result=f"Delayed {delay_ms}ms")
            case _:
                assert_never(node)

    async def _execute_llm(self, node: LLMNode, context: dict[str, Any]) -> dict[str, Any]:
        cfg = node.config
        if not cfg.provider_id:
            raise NodeExecutionError("Agent node requires an llmProviderId in config")
        if self.llm is None:
            raise NodeExecutionError("No LLM provider registry configured")

        messages: list[dict[str, str]] = []
        if cfg.system_prompt:
            messages.append({"role": "system", "content": cfg.system_prompt})

        if cfg.prompt and cfg.prompt.strip():
            user_message = resolve(cfg.prompt, context)
        else:
            raw_input = context.get("input")
            user_message = (
                raw_input if isinstance(raw_input, str) else json.dumps(raw_input, default=str)
            )
        messages.append({"role": "user", "content": user_message})

        request = GenerateRequest(
            messages=messages,
            temperature=(
                cfg.temperature if cfg.temperature is not None else self.config.default_temperature
            ),
            max_tokens=cfg.max_tokens or self.config.default_max_tokens,
        )
        response = await self.llm.generate(cfg.provider_id, request)
        tokens = response.usage.get("total_tokens", 0)
        logger.info(f"   ✓ LLM {cfg.provider_id} (tokens: {tokens})")
        return envelope("agent", node.label, result=response.text, usage=response.usage)

    async def _execute_tool(self, node: ToolNode, context: dict[str, Any]) -> dict[str, Any]:
        cfg = node.config
        if not cfg.tool_id:
            raise NodeExecutionError("Tool node requires a toolId in config")
        if self.tools is None:
            raise NodeExecutionError("No tool executor configured")

        tool_input = resolve_deep(cfg.input if cfg.input is not None else {}, context)
        result = await self.tools.execute_tool(
            cfg.tool_id, ToolExecutionContext(input=tool_input, context=context)
        )
        if not result.success:
            raise ToolExecutionError(result.error or "Tool execution failed")
        return envelope(node.type, node.label, success=result.success, result=result.output)

    def _execute_decision(self, node: DecisionNode, context: dict[str, Any]) -> dict[str, Any]:
        condition = node.config.condition or "true"
        run_input = context.get("input")
        proceed = isinstance(run_input, dict) and run_input.get("proceed") is True
        outcome = "true" if condition == "true" or proceed else "false"
        return envelope(node.type, node.label, result=outcome, branch=outcome)
