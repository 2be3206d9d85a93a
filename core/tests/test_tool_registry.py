"""Tests for tool registration, dispatch and the built-in tools."""

import json
import logging

import pytest

from agentflow.runner import Tool, ToolExecutionContext, ToolExecutionResult, ToolRegistry


def ctx(**tool_input) -> ToolExecutionContext:
    return ToolExecutionContext(input=tool_input)


class TestRegistry:
    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await ToolRegistry().execute_tool("nope", ctx())
        assert result == ToolExecutionResult(success=False, error="Tool not found: nope")

    @pytest.mark.asyncio
    async def test_plain_return_value_is_wrapped(self):
        registry = ToolRegistry()

        async def handler(context):
            return {"echo": context.input}

        registry.register("echo", Tool(name="echo", description="Echo"), handler)

        result = await registry.execute_tool("echo", ctx(a=1))

        assert result.success
        assert result.output == {"echo": {"a": 1}}
        assert registry.has_tool("echo")
        assert registry.get_registered_names() == ["echo"]

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, caplog):
        registry = ToolRegistry()

        async def handler(context):
            raise RuntimeError("disk full")

        registry.register("bad", Tool(name="bad", description="Bad"), handler)

        result = await registry.execute_tool("bad", ctx())

        assert not result.success
        assert result.error == "disk full"
        assert "Tool 'bad' execution failed" in caplog.text

    @pytest.mark.asyncio
    async def test_register_function(self):
        registry = ToolRegistry()

        def add(a: int, b: int = 2) -> int:
            """Add numbers."""
            return a + b

        async def shout(text: str) -> str:
            return text.upper()

        registry.register_function(add)
        registry.register_function(shout, name="SHOUT")

        tool = registry.get_tools()["add"]
        assert tool.description == "Add numbers."
        assert tool.parameters["properties"] == {"a": {"type": "integer"}, "b": {"type": "integer"}}
        assert tool.parameters["required"] == ["a"]

        assert (await registry.execute_tool("add", ctx(a=1))).output == 3
        assert (await registry.execute_tool("SHOUT", ctx(text="hi"))).output == "HI"

    @pytest.mark.asyncio
    async def test_webhook_posts_json(self, tools, http_requests):
        tools.register_webhook(
            "crm", "https://crm.example.com/hooks/ticket", headers={"X-Token": "t"}
        )

        result = await tools.execute_tool("crm", ctx(ticket="T-1"))

        assert result.success
        assert result.output == {
            "method": "POST",
            "path": "/hooks/ticket",
            "body": {"ticket": "T-1"},
        }
        request = http_requests[0]
        assert request.headers["X-Token"] == "t"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_webhook_http_error_is_failure(self, tools):
        tools.register_webhook("crm", "https://crm.example.com/fail")

        result = await tools.execute_tool("crm", ctx(ticket="T-1"))

        assert not result.success
        assert "500" in result.error


class TestHttpRequestTool:
    @pytest.mark.asyncio
    async def test_json_response(self, tools, http_requests):
        result = await tools.execute_tool(
            "http-request",
            ctx(url="https://api.example.com/orders", method="post", body={"id": 7}),
        )

        assert result.success
        assert result.output["status"] == 200
        assert result.output["statusText"] == "OK"
        assert result.output["data"] == {"method": "POST", "path": "/orders", "body": {"id": 7}}
        assert json.loads(http_requests[0].content) == {"id": 7}

    @pytest.mark.asyncio
    async def test_text_response(self, tools):
        result = await tools.execute_tool("http-request", ctx(url="https://api.example.com/text"))
        assert result.output["data"] == "plain body"

    @pytest.mark.asyncio
    async def test_requires_url(self, tools):
        result = await tools.execute_tool("http-request", ctx(method="GET"))
        assert result == ToolExecutionResult(success=False, error="http-request requires 'url'")

    @pytest.mark.asyncio
    async def test_non_object_input(self, tools):
        result = await tools.execute_tool("http-request", ToolExecutionContext(input="x"))
        assert not result.success
        assert "must be an object" in result.error


class TestDataTransformTool:
    ROWS = [
        {"id": 1, "status": "open", "owner": "ada"},
        {"id": 2, "status": "closed", "owner": "lin"},
    ]

    @pytest.mark.asyncio
    async def test_select(self, tools):
        result = await tools.execute_tool(
            "data-transform",
            ctx(data=self.ROWS, transformType="select", transformConfig={"fields": ["id"]}),
        )
        assert result.output == [{"id": 1}, {"id": 2}]

    @pytest.mark.asyncio
    async def test_map(self, tools):
        result = await tools.execute_tool(
            "data-transform",
            ctx(
                data=self.ROWS[0],
                transformType="map",
                transformConfig={"mapping": {"assignee": "owner"}},
            ),
        )
        assert result.output == {"assignee": "ada"}

    @pytest.mark.asyncio
    async def test_filter(self, tools):
        result = await tools.execute_tool(
            "data-transform",
            ctx(
                data=self.ROWS,
                transformType="filter",
                transformConfig={"field": "status", "value": "open"},
            ),
        )
        assert result.output == [self.ROWS[0]]

    @pytest.mark.asyncio
    async def test_filter_needs_list(self, tools):
        result = await tools.execute_tool(
            "data-transform",
            ctx(data={}, transformType="filter", transformConfig={"field": "x"}),
        )
        assert result.error == "filter transform requires a list"


@pytest.mark.asyncio
async def test_delay_tool(tools):
    result = await tools.execute_tool("delay", ctx(duration=1))
    assert result.output == {"delayed": 1}


@pytest.mark.asyncio
async def test_log_tool(tools, caplog):
    with caplog.at_level(logging.INFO, logger="agentflow.runner.builtin_tools"):
        result = await tools.execute_tool(
            "log", ctx(message="ticket routed", level="warn", data={"to": "billing"})
        )

    assert result.output == {
        "logged": True,
        "message": "ticket routed",
        "data": {"to": "billing"},
    }
    assert caplog.records[-1].levelno == logging.WARNING
    assert "ticket routed" in caplog.records[-1].getMessage()
