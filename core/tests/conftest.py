"""Shared fixtures: in-memory database, stores, collaborators and engines."""

import json

import httpx
import pytest

from agentflow import config as agentflow_config
from agentflow.config import EngineConfig
from agentflow.graph.agent_engine import AgentEngine
from agentflow.graph.cache import CompiledGraphCache
from agentflow.graph.scenario_engine import ScenarioEngine
from agentflow.graph.step_executor import StepExecutor
from agentflow.llm import LLMProviderRegistry, MockLLMProvider
from agentflow.observability import clear_trace_context
from agentflow.runner import ToolRegistry, register_builtin_tools
from agentflow.storage import Database, ExecutionStore, VersionStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the developer's ~/.agentflow and environment out of every test."""
    monkeypatch.setattr(
        agentflow_config, "AGENTFLOW_CONFIG_FILE", tmp_path / "configuration.json"
    )
    for name in (
        "AGENTFLOW_DATABASE_URL",
        "AGENTFLOW_PARALLEL_JOIN",
        "AGENTFLOW_RECOVERY_POLICY",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_trace_context()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        database_url="sqlite://",
        default_delay_ms=1,
        parallel_join="settle_all",
        recovery_policy="fail",
        log_level="DEBUG",
    )


@pytest.fixture
def db():
    database = Database.in_memory()
    yield database
    database.close()


@pytest.fixture
def versions(db) -> VersionStore:
    return VersionStore(db)


@pytest.fixture
def executions(db) -> ExecutionStore:
    return ExecutionStore(db)


@pytest.fixture
def cache() -> CompiledGraphCache:
    return CompiledGraphCache()


@pytest.fixture
def llm() -> LLMProviderRegistry:
    """Registry with an echoing ``mock`` provider. Tests register more as needed."""
    registry = LLMProviderRegistry()
    registry.register("mock", MockLLMProvider())
    return registry


def _echo_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/text":
        return httpx.Response(200, text="plain body")
    if request.url.path == "/fail":
        return httpx.Response(500, json={"error": "upstream exploded"})
    body = json.loads(request.content) if request.content else None
    return httpx.Response(
        200,
        json={"method": request.method, "path": request.url.path, "body": body},
    )


@pytest.fixture
def http_requests() -> list[httpx.Request]:
    """Every request the mocked transport has seen, in order."""
    return []


@pytest.fixture
def tools(http_requests) -> ToolRegistry:
    """Tool registry with built-ins, wired to an in-process HTTP transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        http_requests.append(request)
        return _echo_handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    registry = ToolRegistry(http_client=client)
    register_builtin_tools(registry)
    return registry


@pytest.fixture
def step_executor(llm, tools, engine_config) -> StepExecutor:
    return StepExecutor(llm=llm, tools=tools, config=engine_config)


@pytest.fixture
def agent_engine(versions, executions, step_executor, cache) -> AgentEngine:
    return AgentEngine(versions, executions, step_executor, cache=cache)


@pytest.fixture
def scenario_engine(versions, executions, agent_engine, cache, engine_config) -> ScenarioEngine:
    return ScenarioEngine(versions, executions, agent_engine, cache=cache, config=engine_config)
