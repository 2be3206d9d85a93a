"""Tool backends for tool nodes."""

from agentflow.runner.builtin_tools import register_builtin_tools
from agentflow.runner.tool_registry import (
    Tool,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolExecutor,
    ToolRegistry,
)

__all__ = [
    "Tool",
    "ToolExecutionContext",
    "ToolExecutionResult",
    "ToolExecutor",
    "ToolRegistry",
    "register_builtin_tools",
]
