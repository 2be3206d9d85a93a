"""
Execution Runtime - Top-level entry point for running Scenarios and Agents.

Owns one database, the version and execution stores, one compiled-graph cache
and both engines. Definition saves and updates go through the runtime so the
cache never serves a graph that was rewritten underneath it.
"""

import logging
from typing import Any, Self

from agentflow.config import EngineConfig
from agentflow.errors import DefinitionNotFoundError, ExecutionNotFoundError
from agentflow.graph.agent_engine import AgentEngine
from agentflow.graph.cache import CompiledGraphCache
from agentflow.graph.edge import GraphDefinition
from agentflow.graph.scenario_engine import ScenarioEngine
from agentflow.graph.step_executor import StepExecutor
from agentflow.llm.registry import LLMProviderRegistry
from agentflow.runner.builtin_tools import register_builtin_tools
from agentflow.runner.tool_registry import ToolRegistry
from agentflow.schemas.execution import (
    AgentExecution,
    AgentExecutionResult,
    ScenarioExecution,
    ScenarioExecutionResult,
    StepExecution,
)
from agentflow.schemas.version import DefinitionKind, DefinitionVersion
from agentflow.storage.database import Database
from agentflow.storage.execution_store import ExecutionStore
from agentflow.storage.version_store import VersionStore

logger = logging.getLogger(__name__)

GraphInput = GraphDefinition | dict[str, Any]


class ExecutionRuntime:
    """
    Runs Scenarios and Agents against a persistent store.

    Example:
        llm = LLMProviderRegistry()
        llm.register("openai", LiteLLMProvider("gpt-4o-mini"))

        async with ExecutionRuntime(llm=llm) as runtime:
            agent = runtime.create_agent("Classifier", agent_graph)
            scenario = runtime.create_scenario("Support", scenario_graph)
            result = await runtime.execute_scenario(
                scenario.definition_id, {"message": "I was charged twice"}
            )
            for summary in result.agent_executions:
                print(summary.agent_name, summary.status)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        database: Database | None = None,
        llm: LLMProviderRegistry | None = None,
        tools: ToolRegistry | None = None,
    ):
        """
        Initialize the runtime.

        Args:
            config: Engine configuration, loaded from the environment when omitted
            database: Database to use instead of ``config.database_url``
            llm: LLM provider registry for agent nodes
            tools: Tool registry for tool nodes; built-in tools are added when omitted
        """
        self.config = config or EngineConfig()
        self.db = database or Database.from_url(self.config.database_url)

        self.llm = llm or LLMProviderRegistry()
        if tools is None:
            tools = ToolRegistry()
            register_builtin_tools(tools)
        self.tools = tools

        self.versions = VersionStore(self.db, recovery_policy=self.config.recovery_policy)
        self.executions = ExecutionStore(self.db)
        self.cache = CompiledGraphCache()

        self.agent_engine = AgentEngine(
            self.versions,
            self.executions,
            StepExecutor(llm=self.llm, tools=self.tools, config=self.config),
            cache=self.cache,
        )
        self.scenario_engine = ScenarioEngine(
            self.versions,
            self.executions,
            self.agent_engine,
            cache=self.cache,
            config=self.config,
        )

    # === Execution ===

    async def execute_scenario(
        self,
        scenario_id: str,
        input: Any = None,
        conversation_id: str | None = None,
        triggered_by: str | None = None,
    ) -> ScenarioExecutionResult:
        return await self.scenario_engine.execute_scenario(
            scenario_id, input, conversation_id=conversation_id, triggered_by=triggered_by
        )

    async def execute_agent(
        self,
        agent_version_id: str,
        input: Any = None,
        scenario_execution_id: str | None = None,
        scenario_node_id: str | None = None,
    ) -> AgentExecutionResult:
        return await self.agent_engine.execute_agent(
            agent_version_id,
            input,
            scenario_execution_id=scenario_execution_id,
            scenario_node_id=scenario_node_id,
        )

    def get_execution(self, execution_id: str) -> ScenarioExecution | AgentExecution:
        """
        Look up a Scenario or Agent execution by id.

        Raises:
            ExecutionNotFoundError: no record of either kind has this id
        """
        execution = self.executions.get_scenario_execution(execution_id)
        if execution is None:
            execution = self.executions.get_agent_execution(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(f"Execution not found: {execution_id}")
        return execution

    def get_execution_steps(self, agent_execution_id: str) -> list[StepExecution]:
        return self.executions.list_steps(agent_execution_id)

    def get_agent_executions(self, scenario_execution_id: str) -> list[AgentExecution]:
        return self.executions.list_agent_executions(scenario_execution_id)

    def cancel_execution(self, execution_id: str) -> bool:
        return self.executions.cancel_execution(execution_id)

    def clear_cache(self, version_id: str | None = None) -> None:
        self.cache.invalidate(version_id)
        logger.info(f"Cleared compiled-graph cache ({version_id or 'all versions'})")

    # === Definitions ===

    def create_agent(
        self, name: str, graph: GraphInput | None = None, description: str | None = None
    ) -> DefinitionVersion:
        return self.versions.create_definition(
            DefinitionKind.AGENT, name, graph, description=description
        )

    def create_scenario(
        self, name: str, graph: GraphInput | None = None, description: str | None = None
    ) -> DefinitionVersion:
        return self.versions.create_definition(
            DefinitionKind.SCENARIO, name, graph, description=description
        )

    def save_agent_version(
        self,
        agent_id: str,
        graph: GraphInput,
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        return self._save(DefinitionKind.AGENT, agent_id, graph, name, description)

    def save_scenario_version(
        self,
        scenario_id: str,
        graph: GraphInput,
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        return self._save(DefinitionKind.SCENARIO, scenario_id, graph, name, description)

    def update_agent_definition(
        self,
        agent_id: str,
        graph: GraphInput,
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        return self._update(DefinitionKind.AGENT, agent_id, graph, name, description)

    def update_scenario_definition(
        self,
        scenario_id: str,
        graph: GraphInput,
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        return self._update(DefinitionKind.SCENARIO, scenario_id, graph, name, description)

    def _save(
        self,
        kind: DefinitionKind,
        definition_id: str,
        graph: GraphInput,
        name: str | None,
        description: str | None,
    ) -> DefinitionVersion:
        self._require_kind(kind, definition_id)
        previous = self.versions.get_active_version(definition_id)
        version = self.versions.save_version(
            definition_id, graph, name=name, description=description
        )
        if previous is not None:
            self.cache.invalidate(previous.id)
        self.cache.invalidate(version.id)
        return version

    def _update(
        self,
        kind: DefinitionKind,
        definition_id: str,
        graph: GraphInput,
        name: str | None,
        description: str | None,
    ) -> DefinitionVersion:
        self._require_kind(kind, definition_id)
        version = self.versions.update_definition(
            definition_id, graph, name=name, description=description
        )
        # Rewritten in place, so the cached graph for this id is stale.
        self.cache.invalidate(version.id)
        return version

    def _require_kind(self, kind: DefinitionKind, definition_id: str) -> None:
        definition = self.versions.get_definition(definition_id)
        if definition is None or definition.kind != kind:
            raise DefinitionNotFoundError(f"{kind.capitalize()} not found: {definition_id}")

    # === Lifecycle ===

    async def aclose(self) -> None:
        """Release the tool HTTP client and the database."""
        await self.tools.aclose()
        self.close()

    def close(self) -> None:
        """Close the database only. Use ``aclose`` to also release the tool HTTP client."""
        self.db.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
