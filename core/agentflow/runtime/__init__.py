"""Runtime facade wiring storage, collaborators and engines together."""

from agentflow.runtime.execution_runtime import ExecutionRuntime

__all__ = ["ExecutionRuntime"]
