"""Relational persistence for versions and execution records."""

from agentflow.storage.database import Database
from agentflow.storage.execution_store import ExecutionStore
from agentflow.storage.version_store import VersionStore

__all__ = ["Database", "ExecutionStore", "VersionStore"]
