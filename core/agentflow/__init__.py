"""
agentflow - hierarchical graph execution for Scenarios and Agents.

A Scenario graph orchestrates Agents; an Agent graph runs LLM, tool and
control-flow steps. Every run leaves a persisted three-level audit trail.
"""

from agentflow.config import EngineConfig
from agentflow.errors import (
    AgentExecutionError,
    AgentFlowError,
    DefinitionNotFoundError,
    ExecutionNotFoundError,
    GraphValidationError,
    NoActiveVersionError,
    NodeExecutionError,
    ParallelExecutionError,
    ProviderNotFoundError,
    ToolExecutionError,
    VersionNotFoundError,
)
from agentflow.runtime import ExecutionRuntime
from agentflow.schemas.execution import (
    AgentExecutionResult,
    ExecutionStatus,
    ScenarioExecutionResult,
)

__all__ = [
    "EngineConfig",
    "ExecutionRuntime",
    "ExecutionStatus",
    "AgentExecutionResult",
    "ScenarioExecutionResult",
    # Errors
    "AgentFlowError",
    "GraphValidationError",
    "DefinitionNotFoundError",
    "VersionNotFoundError",
    "NoActiveVersionError",
    "NodeExecutionError",
    "ToolExecutionError",
    "ProviderNotFoundError",
    "AgentExecutionError",
    "ParallelExecutionError",
    "ExecutionNotFoundError",
]
