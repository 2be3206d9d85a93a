"""
Execution Schemas - The three-level audit trail.

    ScenarioExecution
        └── AgentExecution   (one per scenario-agent / parallel sibling)
                └── StepExecution   (one per dequeued node)

Every record is created once in ``running`` and finalized exactly once into a
terminal status. Terminal states are final.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class ExecutionStatus(StrEnum):
    """Status of an execution record."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)


class _ExecutionRecord(BaseModel):
    id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    input: Any = None
    output: Any = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None

    model_config = {"extra": "allow"}


class ScenarioExecution(_ExecutionRecord):
    """A single run of a Scenario version."""

    scenario_version_id: str
    conversation_id: str | None = None
    triggered_by: str | None = None


class AgentExecution(_ExecutionRecord):
    """A single run of an Agent version, standalone or inside a Scenario."""

    agent_version_id: str
    scenario_execution_id: str | None = None
    scenario_node_id: str | None = None


class StepExecution(_ExecutionRecord):
    """One node executed inside an Agent run. ``input`` is the context snapshot."""

    agent_execution_id: str
    step_index: int
    node_id: str
    node_type: str
    node_label: str | None = None


class AgentExecutionResult(BaseModel):
    """Returned by the Agent Engine. Never raised, always returned."""

    agent_execution_id: str | None
    status: ExecutionStatus
    output: Any = None
    error: str | None = None
    duration_ms: int | None = None
    steps: list[StepExecution] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED


class AgentExecutionSummary(BaseModel):
    """What a Scenario remembers about each Agent it ran."""

    agent_id: str
    agent_name: str = ""
    scenario_node_id: str
    agent_execution_id: str | None
    status: ExecutionStatus
    duration_ms: int | None = None
    error: str | None = None


class ScenarioExecutionResult(BaseModel):
    """Returned by the Scenario Engine."""

    scenario_execution_id: str | None
    status: ExecutionStatus
    output: Any = None
    error: str | None = None
    agent_executions: list[AgentExecutionSummary] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED
