"""
Scenario Engine - Orchestrates Agents according to a Scenario graph.

The engine:
1. Loads the newest active Scenario version and compiles it through the cache
2. Creates a running ScenarioExecution record
3. Walks the graph breadth-first from the trigger's successors
4. Delegates scenario-agent and scenario-parallel nodes to the Agent Engine
5. Follows only the selected branch out of scenario-decision nodes
6. Finalizes the ScenarioExecution exactly once

Parallel join policies:
- settle_all (default): every sibling's outcome is recorded in the node output
  and the node itself succeeds
- all_or_nothing: the node fails if any sibling failed, after every sibling
  has settled and been recorded
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, assert_never

from sqlalchemy.exc import SQLAlchemyError

from agentflow.config import EngineConfig
from agentflow.errors import (
    AgentExecutionError,
    NoActiveVersionError,
    NodeExecutionError,
    ParallelExecutionError,
)
from agentflow.graph.agent_engine import AgentEngine
from agentflow.graph.cache import CompiledGraphCache
from agentflow.graph.compiler import CompiledGraph, compile_scenario_graph
from agentflow.graph.conditions import select_branch
from agentflow.graph.node import (
    ScenarioAgentConfig,
    ScenarioAgentNode,
    ScenarioDecisionNode,
    ScenarioEndNode,
    ScenarioNode,
    ScenarioParallelNode,
    ScenarioTransformNode,
    ScenarioTriggerNode,
)
from agentflow.graph.step_executor import envelope
from agentflow.graph.template import MISSING, get_path, resolve_deep
from agentflow.observability import trace_scope
from agentflow.schemas.execution import (
    AgentExecutionResult,
    AgentExecutionSummary,
    ExecutionStatus,
    ScenarioExecutionResult,
)
from agentflow.storage.execution_store import ExecutionStore
from agentflow.storage.version_store import VersionStore

logger = logging.getLogger(__name__)


@dataclass
class ScenarioRun:
    """Mutable state of one Scenario execution."""

    execution_id: str
    context: dict[str, Any]
    results: dict[str, Any] = field(default_factory=dict)
    summaries: list[AgentExecutionSummary] = field(default_factory=list)
    end_output: Any = None
    ended: bool = False

    def final_output(self) -> Any:
        if self.ended:
            return self.end_output
        return {"results": self.results, "finalContext": self.context}


class ScenarioEngine:
    """
    Executes Scenarios.

    Example:
        engine = ScenarioEngine(versions, executions, agent_engine, cache)
        result = await engine.execute_scenario(scenario_id, {"message": "refund please"})
    """

    def __init__(
        self,
        versions: VersionStore,
        executions: ExecutionStore,
        agent_engine: AgentEngine,
        cache: CompiledGraphCache | None = None,
        config: EngineConfig | None = None,
    ):
        self.versions = versions
        self.executions = executions
        self.agent_engine = agent_engine
        self.cache = cache if cache is not None else agent_engine.cache
        self.config = config or EngineConfig()

    async def execute_scenario(
        self,
        scenario_id: str,
        input: Any = None,
        conversation_id: str | None = None,
        triggered_by: str | None = None,
    ) -> ScenarioExecutionResult:
        run_input = input if input is not None else {}

        version = self.versions.get_active_version(scenario_id)
        if version is None:
            error = f"No active scenario version found for: {scenario_id}"
            logger.error(f"✗ {error}")
            return ScenarioExecutionResult(
                scenario_execution_id=None, status=ExecutionStatus.FAILED, error=error
            )

        execution = self.executions.create_scenario_execution(
            scenario_version_id=version.id,
            input=run_input,
            conversation_id=conversation_id,
            triggered_by=triggered_by,
        )
        run = ScenarioRun(execution_id=execution.id, context={"input": run_input})

        status = ExecutionStatus.FAILED
        output: Any = None
        error: str | None = None
        infrastructure_failure = False

        with trace_scope(scenario_execution_id=execution.id):
            logger.info(
                f"▶ Scenario {version.name or scenario_id} (v{version.version})",
                extra={"event": "scenario_started"},
            )
            try:
                graph = self.cache.get_or_compile(
                    version.id, version.graph, compile_scenario_graph
                )
                await self._traverse(run, graph)
                output = run.final_output()
                status = ExecutionStatus.COMPLETED
            except asyncio.CancelledError:
                status = ExecutionStatus.CANCELLED
                error = "Execution cancelled"
                raise
            except SQLAlchemyError:
                infrastructure_failure = True
                raise
            except Exception as e:
                error = str(e)
                logger.error(f"✗ Scenario failed: {error}", extra={"event": "scenario_failed"})
            finally:
                if not infrastructure_failure:
                    record = self.executions.finalize_scenario_execution(
                        execution.id, status, output=output, error=error
                    )

            if record.status == ExecutionStatus.COMPLETED:
                logger.info(
                    f"✓ Scenario complete ({record.duration_ms}ms, "
                    f"{len(run.summaries)} agent run(s))",
                    extra={"event": "scenario_completed", "duration_ms": record.duration_ms},
                )

        return ScenarioExecutionResult(
            scenario_execution_id=execution.id,
            status=record.status,
            output=output,
            error=error,
            agent_executions=run.summaries,
        )

    async def _traverse(self, run: ScenarioRun, graph: CompiledGraph) -> None:
        queue = deque(graph.successors(graph.entry_node_id))
        visited: set[str] = set()

        while queue:
            node_id = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)

            node = graph.get_node(node_id)
            if node is None:
                continue

            with trace_scope(node_id=node.id):
                logger.info(f"▶ {node.label or node.id} ({node.type})")
                result = await self._dispatch(run, node)

            run.results[node_id] = result
            run.context[node_id] = result

            if isinstance(node, ScenarioDecisionNode):
                queue.extend(graph.branch_targets(node_id, result["selectedBranch"]))
            else:
                queue.extend(graph.successors(node_id))

    async def _dispatch(self, run: ScenarioRun, node: ScenarioNode) -> dict[str, Any]:
        match node:
            case ScenarioTriggerNode():
                return envelope(
                    node.type, node.label, triggered=True, input=run.context.get("input")
                )
            case ScenarioAgentNode():
                return await self._run_agent_node(run, node)
            case ScenarioDecisionNode():
                return self._run_decision(run, node)
            case ScenarioParallelNode():
                return await self._run_parallel(run, node)
            case ScenarioTransformNode():
                return envelope(node.type, node.label, result=self._transform(run, node))
            case ScenarioEndNode():
                run.end_output = resolve_deep(node.config.output or {}, run.context)
                run.ended = True
                return envelope(node.type, node.label, output=run.end_output)
            case _:
                assert_never(node)

    # === Agent delegation ===

    async def _invoke_agent(
        self, run: ScenarioRun, node: ScenarioNode, cfg: ScenarioAgentConfig
    ) -> AgentExecutionResult:
        if not cfg.agent_id:
            raise NodeExecutionError(f"{node.type} node requires agentId in config")

        version = self.versions.get_active_version(cfg.agent_id)
        if version is None:
            raise NoActiveVersionError(f"No active agent version found for: {cfg.agent_id}")

        agent_input = resolve_deep(cfg.input or {}, run.context)
        return await self.agent_engine.execute_agent(
            version.id,
            agent_input,
            scenario_execution_id=run.execution_id,
            scenario_node_id=node.id,
        )

    async def _run_agent_node(self, run: ScenarioRun, node: ScenarioAgentNode) -> dict[str, Any]:
        cfg = node.config
        result = await self._invoke_agent(run, node, cfg)

        summary = AgentExecutionSummary(
            agent_id=cfg.agent_id,
            agent_name=cfg.agent_name,
            scenario_node_id=node.id,
            agent_execution_id=result.agent_execution_id,
            status=result.status,
            duration_ms=result.duration_ms,
            error=result.error,
        )
        run.summaries.append(summary)

        if result.status != ExecutionStatus.COMPLETED:
            raise AgentExecutionError(
                f"Agent {cfg.agent_name or cfg.agent_id} {result.status}: {result.error}",
                agent_execution_id=result.agent_execution_id,
            )

        return envelope(
            node.type,
            node.label,
            agentId=cfg.agent_id,
            agentName=cfg.agent_name,
            output=result.output,
            agentExecution=summary.model_dump(mode="json"),
        )

    async def _run_parallel(self, run: ScenarioRun, node: ScenarioParallelNode) -> dict[str, Any]:
        agents = node.config.agents
        if not agents:
            raise NodeExecutionError("scenario-parallel node requires agents in config")

        policy = node.config.join_policy or self.config.parallel_join
        logger.info(f"   ⑂ Fan-out: running {len(agents)} agents in parallel ({policy})")

        outcomes = await asyncio.gather(
            *(self._invoke_agent(run, node, cfg) for cfg in agents),
            return_exceptions=True,
        )

        branches: list[dict[str, Any]] = []
        failed_agents: list[str] = []
        for cfg, outcome in zip(agents, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                execution_id, status, output, error, duration_ms = (
                    None,
                    ExecutionStatus.FAILED,
                    None,
                    str(outcome) or type(outcome).__name__,
                    None,
                )
            else:
                execution_id, status, output, error, duration_ms = (
                    outcome.agent_execution_id,
                    outcome.status,
                    outcome.output,
                    outcome.error,
                    outcome.duration_ms,
                )

            summary = AgentExecutionSummary(
                agent_id=cfg.agent_id or "",
                agent_name=cfg.agent_name,
                scenario_node_id=node.id,
                agent_execution_id=execution_id,
                status=status,
                duration_ms=duration_ms,
                error=error,
            )
            run.summaries.append(summary)
            branches.append(
                {
                    "agentId": cfg.agent_id,
                    "agentName": cfg.agent_name,
                    "agentExecutionId": execution_id,
                    "status": status.value,
                    "durationMs": duration_ms,
                    "output": output,
                    "error": error,
                }
            )
            if status != ExecutionStatus.COMPLETED:
                failed_agents.append(cfg.agent_name or cfg.agent_id or "?")
                logger.warning(f"      ✗ {cfg.agent_name or cfg.agent_id}: {error}")
            else:
                logger.info(f"      ✓ {cfg.agent_name or cfg.agent_id}")

        completed_count = len(agents) - len(failed_agents)
        logger.info(f"   ⑃ Fan-in: {completed_count}/{len(agents)} agents completed")

        if failed_agents and policy == "all_or_nothing":
            raise ParallelExecutionError(
                f"{len(failed_agents)} of {len(agents)} parallel agents failed: "
                f"{', '.join(failed_agents)}",
                failed_agents=failed_agents,
            )

        return envelope(
            node.type,
            node.label,
            results=[branch["output"] for branch in branches],
            branches=branches,
            completedCount=completed_count,
            failedCount=len(failed_agents),
            agentExecutions=[s.model_dump(mode="json") for s in run.summaries[-len(agents) :]],
        )

    # === Local nodes ===

    def _run_decision(self, run: ScenarioRun, node: ScenarioDecisionNode) -> dict[str, Any]:
        branches = node.config.branches
        if not branches:
            raise NodeExecutionError("scenario-decision node requires branches in config")

        selected = select_branch([b.condition for b in branches], run.context)
        logger.info(f"   → Branch {selected}: {branches[selected].label or '(unlabelled)'}")
        return envelope(
            node.type,
            node.label,
            selectedBranch=selected,
            selectedLabel=branches[selected].label,
        )

    def _transform(self, run: ScenarioRun, node: ScenarioTransformNode) -> Any:
        cfg = node.config
        match cfg.transform_type:
            case "select":
                selected = {}
                for path in cfg.transform_config.get("fields", []):
                    value = get_path(run.context, path)
                    if value is not MISSING:
                        selected[path] = value
                return selected
            case "map":
                mapped = {}
                for new_key, path in cfg.transform_config.get("mapping", {}).items():
                    value = get_path(run.context, path)
                    if value is not MISSING:
                        mapped[new_key] = value
                return mapped
            case _:
                return dict(run.context)
