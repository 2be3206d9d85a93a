"""
Built-in tools available to every tool node.

- http-request: call an external HTTP API
- data-transform: select / map / filter structured data
- delay: sleep for ``duration`` milliseconds
- log: write a message through the standard logger
"""

import asyncio
import logging
from typing import Any

from agentflow.runner.tool_registry import (
    Tool,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "log": logging.INFO,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def select_fields(data: Any, fields: list[str]) -> Any:
    if isinstance(data, list):
        return [select_fields(item, fields) for item in data]
    return {name: data[name] for name in fields if name in data}


def map_fields(data: Any, mapping: dict[str, str]) -> Any:
    if isinstance(data, list):
        return [map_fields(item, mapping) for item in data]
    return {new_key: data[old_key] for new_key, old_key in mapping.items() if old_key in data}


def filter_items(data: Any, field: str, value: Any) -> list[Any]:
    if not isinstance(data, list):
        raise ValueError("filter transform requires a list")
    return [item for item in data if isinstance(item, dict) and item.get(field) == value]


def _as_dict(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"Tool input must be an object, got {type(value).__name__}")
    return value


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    """Register the built-in tools on a registry and return it."""

    async def http_request(ctx: ToolExecutionContext) -> ToolExecutionResult:
        params = _as_dict(ctx.input)
        url = params.get("url")
        if not url:
            return ToolExecutionResult(success=False, error="http-request requires 'url'")

        response = await registry.http_client.request(
            params.get("method", "GET").upper(),
            url,
            headers=params.get("headers") or {},
            json=params.get("body"),
        )
        try:
            data = response.json()
        except ValueError:
            data = response.text
        return ToolExecutionResult(
            success=True,
            output={
                "status": response.status_code,
                "statusText": response.reason_phrase,
                "data": data,
            },
        )

    async def data_transform(ctx: ToolExecutionContext) -> ToolExecutionResult:
        params = _as_dict(ctx.input)
        data = params.get("data")
        transform_type = params.get("transformType")
        config = params.get("transformConfig") or {}

        match transform_type:
            case "select":
                result = select_fields(data, config.get("fields", []))
            case "map":
                result = map_fields(data, config.get("mapping", {}))
            case "filter":
                result = filter_items(data, config.get("field", ""), config.get("value"))
            case _:
                return ToolExecutionResult(
                    success=False, error=f"Unknown transform type: {transform_type}"
                )
        return ToolExecutionResult(success=True, output=result)

    async def delay(ctx: ToolExecutionContext) -> ToolExecutionResult:
        duration = _as_dict(ctx.input).get("duration", 0)
        await asyncio.sleep(duration / 1000)
        return ToolExecutionResult(success=True, output={"delayed": duration})

    async def log(ctx: ToolExecutionContext) -> ToolExecutionResult:
        params = _as_dict(ctx.input)
        message = params.get("message", "")
        data = params.get("data")
        level = _LOG_LEVELS.get(str(params.get("level", "info")).lower(), logging.INFO)
        logger.log(level, f"{message} {data}" if data is not None else message)
        return ToolExecutionResult(
            success=True, output={"logged": True, "message": message, "data": data}
        )

    registry.register(
        "http-request",
        Tool(
            name="HTTP Request",
            description="Make HTTP requests to external APIs",
            parameters={
                "type": "object",
                "properties": {
                    "url": {"type": "string"},
                    "method": {"type": "string", "default": "GET"},
                    "headers": {"type": "object"},
                    "body": {"type": "object"},
                },
                "required": ["url"],
            },
        ),
        http_request,
    )
    registry.register(
        "data-transform",
        Tool(
            name="Data Transform",
            description="Select, map or filter structured data",
            parameters={
                "type": "object",
                "properties": {
                    "data": {},
                    "transformType": {"type": "string", "enum": ["select", "map", "filter"]},
                    "transformConfig": {"type": "object"},
                },
                "required": ["data", "transformType", "transformConfig"],
            },
        ),
        data_transform,
    )
    registry.register(
        "delay",
        Tool(
            name="Delay",
            description="Wait for a specified duration in milliseconds",
            parameters={
                "type": "object",
                "properties": {"duration": {"type": "number"}},
                "required": ["duration"],
            },
        ),
        delay,
    )
    registry.register(
        "log",
        Tool(
            name="Log",
            description="Write a message to the application log",
            parameters={
                "type": "object",
                "properties": {
                    "message": {"type": "string"},
                    "level": {"type": "string", "default": "info"},
                    "data": {},
                },
                "required": ["message"],
            },
        ),
        log,
    )
    return registry
