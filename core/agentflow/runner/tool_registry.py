"""Tool registration and execution for tool nodes."""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


@dataclass
class Tool:
    """A tool definition: what it is called and what input it takes."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolExecutionContext:
    """Input for one tool call plus a snapshot of the calling Agent's context."""

    input: Any
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolExecutionResult:
    """Outcome of a tool call. Failures are reported here, not raised."""

    success: bool
    output: Any = None
    error: str | None = None


ToolHandler = Callable[[ToolExecutionContext], Awaitable[Any]]


@dataclass
class RegisteredTool:
    """A tool with its async handler."""

    tool: Tool
    handler: ToolHandler


class ToolExecutor(Protocol):
    """What the Step Executor needs from a tool backend."""

    async def execute_tool(
        self, tool_id: str, context: ToolExecutionContext
    ) -> ToolExecutionResult: ...


_JSON_TYPES = {int: "integer", float: "number", bool: "boolean", dict: "object", list: "array"}


class ToolRegistry:
    """
    Manages tool registration and dispatch.

    Tool sources:
    1. Built-in tools (register_builtin_tools)
    2. Webhook tools (register_webhook)
    3. Manually registered handlers and plain functions
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._tools: dict[str, RegisteredTool] = {}
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Shared HTTP client for built-in and webhook tools, created on first use."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    def register(self, tool_id: str, tool: Tool, handler: ToolHandler) -> None:
        """
        Register a single tool with its handler.

        Args:
            tool_id: Id that tool nodes reference in ``toolId``
            tool: Tool definition
            handler: Async callable taking a ToolExecutionContext. It may return
                a ToolExecutionResult or any value (wrapped as a success).
        """
        self._tools[tool_id] = RegisteredTool(tool=tool, handler=handler)

    def register_function(
        self,
        func: Callable,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        """
        Register a sync or async function as a tool.

        The tool input dict is passed as keyword arguments and the parameter
        schema is generated from the signature.
        """
        tool_name = name or func.__name__
        tool_desc = description or func.__doc__ or f"Execute {tool_name}"

        sig = inspect.signature(func)
        properties = {}
        required = []
        for param_name, param in sig.parameters.items():
            param_type = "string"
            if param.annotation is not inspect.Parameter.empty:
                param_type = _JSON_TYPES.get(param.annotation, "string")
            properties[param_name] = {"type": param_type}
            if param.default is inspect.Parameter.empty:
                required.append(param_name)

        tool = Tool(
            name=tool_name,
            description=tool_desc,
            parameters={"type": "object", "properties": properties, "required": required},
        )

        async def handler(ctx: ToolExecutionContext) -> Any:
            result = func(**(ctx.input or {}))
            if inspect.isawaitable(result):
                result = await result
            return result

        self.register(tool_name, tool, handler)

    def register_webhook(
        self,
        tool_id: str,
        url: str,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        """Register a custom tool that sends its resolved input as JSON to a URL."""
        extra_headers = dict(headers or {})

        async def handler(ctx: ToolExecutionContext) -> ToolExecutionResult:
            response = await self.http_client.request(
                method.upper(),
                url,
                json=ctx.input,
                headers={"Content-Type": "application/json", **extra_headers},
            )
            response.raise_for_status()
            return ToolExecutionResult(success=True, output=response.json())

        self.register(
            tool_id,
            Tool(name=name or tool_id, description=description or f"Webhook {method} {url}"),
            handler,
        )

    def get_tools(self) -> dict[str, Tool]:
        """Get all registered Tool objects."""
        return {tool_id: rt.tool for tool_id, rt in self._tools.items()}

    def get_registered_names(self) -> list[str]:
        return list(self._tools.keys())

    def has_tool(self, tool_id: str) -> bool:
        return tool_id in self._tools

    async def execute_tool(
        self, tool_id: str, context: ToolExecutionContext
    ) -> ToolExecutionResult:
        registered = self._tools.get(tool_id)
        if registered is None:
            return ToolExecutionResult(success=False, error=f"Tool not found: {tool_id}")

        try:
            result = await registered.handler(context)
        except Exception as e:
            logger.error(f"Tool '{tool_id}' execution failed: {e}")
            return ToolExecutionResult(success=False, error=str(e))

        if isinstance(result, ToolExecutionResult):
            return result
        return ToolExecutionResult(success=True, output=result)

    async def aclose(self) -> None:
        """Close the HTTP client if this registry created it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
