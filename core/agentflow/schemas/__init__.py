"""Schemas for definitions, versions and the execution audit trail."""

from agentflow.schemas.execution import (
    AgentExecution,
    AgentExecutionResult,
    AgentExecutionSummary,
    ExecutionStatus,
    ScenarioExecution,
    ScenarioExecutionResult,
    StepExecution,
)
from agentflow.schemas.version import Definition, DefinitionKind, DefinitionVersion

__all__ = [
    "AgentExecution",
    "AgentExecutionResult",
    "AgentExecutionSummary",
    "Definition",
    "DefinitionKind",
    "DefinitionVersion",
    "ExecutionStatus",
    "ScenarioExecution",
    "ScenarioExecutionResult",
    "StepExecution",
]
