"""Exceptions raised by the execution engine."""


class AgentFlowError(Exception):
    """Base class for all agentflow errors."""


class GraphValidationError(AgentFlowError):
    """A graph definition failed compilation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid graph definition: {', '.join(self.errors)}")


class DefinitionNotFoundError(AgentFlowError):
    """An Agent or Scenario id does not exist."""


class VersionNotFoundError(AgentFlowError):
    """A definition version id does not exist."""


class NoActiveVersionError(AgentFlowError):
    """A definition has no active version."""


class NodeExecutionError(AgentFlowError):
    """A single node failed while executing."""


class ToolExecutionError(NodeExecutionError):
    """A tool call reported ``success=False``."""


class ProviderNotFoundError(NodeExecutionError):
    """An LLM provider id is not registered."""


class AgentExecutionError(NodeExecutionError):
    """A delegated agent run ended in a non-completed state."""

    def __init__(self, message: str, agent_execution_id: str | None = None):
        self.agent_execution_id = agent_execution_id
        super().__init__(message)


class ParallelExecutionError(NodeExecutionError):
    """One or more branches of an all-or-nothing parallel node failed."""

    def __init__(self, message: str, failed_agents: list[str] | None = None):
        self.failed_agents = list(failed_agents or [])
        super().__init__(message)


class ExecutionNotFoundError(AgentFlowError):
    """No execution record exists for the given id."""
