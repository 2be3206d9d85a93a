"""
Agent Engine - Runs one Agent version's graph with step-level tracking.

The engine:
1. Loads the version and compiles its graph through the cache
2. Creates a running AgentExecution record
3. Walks the graph breadth-first from the trigger's successors
4. Records one StepExecution per dequeued node
5. Finalizes the AgentExecution exactly once

Traversal visits each node at most once per run. A node reachable along two
paths runs when it is first dequeued, which is not a join barrier: it may run
before every one of its predecessors has.
"""

import asyncio
import logging
from collections import deque
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from agentflow.errors import NodeExecutionError
from agentflow.graph.cache import CompiledGraphCache
from agentflow.graph.compiler import CompiledGraph, compile_agent_graph
from agentflow.graph.step_executor import StepExecutor
from agentflow.observability import trace_scope
from agentflow.schemas.execution import AgentExecutionResult, ExecutionStatus
from agentflow.storage.execution_store import ExecutionStore
from agentflow.storage.version_store import VersionStore

logger = logging.getLogger(__name__)


class AgentEngine:
    """
    Executes Agent versions.

    Example:
        engine = AgentEngine(versions, executions, StepExecutor(llm, tools), cache)
        result = await engine.execute_agent(version_id, {"message": "hello"})
        if result.status == ExecutionStatus.FAILED:
            print(result.error)
    """

    def __init__(
        self,
        versions: VersionStore,
        executions: ExecutionStore,
        step_executor: StepExecutor,
        cache: CompiledGraphCache | None = None,
    ):
        self.versions = versions
        self.executions = executions
        self.step_executor = step_executor
        self.cache = cache if cache is not None else CompiledGraphCache()

    async def execute_agent(
        self,
        agent_version_id: str,
        input: Any = None,
        scenario_execution_id: str | None = None,
        scenario_node_id: str | None = None,
    ) -> AgentExecutionResult:
        """
        Run an Agent version to completion.

        Node failures are not raised: they come back as a result with status
        ``failed`` and the error message. Database errors propagate and leave
        the AgentExecution record ``running``.
        """
        run_input = input if input is not None else {}

        version = self.versions.get_version(agent_version_id)
        if version is None:
            error = f"Agent version not found: {agent_version_id}"
            logger.error(f"✗ {error}")
            return AgentExecutionResult(
                agent_execution_id=None, status=ExecutionStatus.FAILED, error=error
            )

        execution = self.executions.create_agent_execution(
            agent_version_id=version.id,
            input=run_input,
            scenario_execution_id=scenario_execution_id,
            scenario_node_id=scenario_node_id,
        )

        status = ExecutionStatus.FAILED
        output: dict[str, Any] | None = None
        error: str | None = None
        infrastructure_failure = False

        with trace_scope(agent_execution_id=execution.id):
            logger.info(
                f"▶ Agent {version.name or version.definition_id} (v{version.version})",
                extra={"event": "agent_started"},
            )
            try:
                graph = self.cache.get_or_compile(version.id, version.graph, compile_agent_graph)
                output = await self._run_steps(execution.id, graph, run_input)
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
                logger.error(f"✗ Agent failed: {error}", extra={"event": "agent_failed"})
            finally:
                if not infrastructure_failure:
                    record = self.executions.finalize_agent_execution(
                        execution.id, status, output=output, error=error
                    )

            if record.status == ExecutionStatus.COMPLETED:
                logger.info(
                    f"✓ Agent complete ({record.duration_ms}ms)",
                    extra={"event": "agent_completed", "duration_ms": record.duration_ms},
                )

        return AgentExecutionResult(
            agent_execution_id=execution.id,
            status=record.status,
            output=output,
            error=error,
            duration_ms=record.duration_ms,
            steps=self.executions.list_steps(execution.id),
        )

    async def _run_steps(
        self, agent_execution_id: str, graph: CompiledGraph, run_input: Any
    ) -> dict[str, Any]:
        context: dict[str, Any] = {"input": run_input}
        results: dict[str, Any] = {}

        queue = deque(graph.successors(graph.entry_node_id))
        visited: set[str] = set()
        step_index = 0

        while queue:
            node_id = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)

            node = graph.get_node(node_id)
            if node is None:
                continue

            step = self.executions.create_step(
                agent_execution_id=agent_execution_id,
                step_index=step_index,
                node_id=node.id,
                node_type=node.type,
                node_label=node.label,
                input=context,
            )
            name = node.label or node.id

            with trace_scope(node_id=node.id):
                logger.info(
                    f"▶ Step {step_index}: {name} ({node.type})",
                    extra={
                        "event": "step_started",
                        "node_type": node.type,
                        "step_index": step_index,
                    },
                )
                step_index += 1
                try:
                    output = await self.step_executor.execute(node, context)
                except Exception as e:
                    self.executions.finalize_step(step.id, ExecutionStatus.FAILED, error=str(e))
                    logger.error(f"   ✗ Failed: {e}", extra={"event": "step_failed"})
                    raise NodeExecutionError(f"Step {name} failed: {e}") from e

                results[node_id] = output
                context[node_id] = output
                self.executions.finalize_step(step.id, ExecutionStatus.COMPLETED, output=output)
                logger.info("   ✓ Success", extra={"event": "step_completed"})

            queue.extend(graph.successors(node_id))

        return {"results": results, "finalContext": context}
