"""
Compiled-graph cache, keyed by definition version id.

One cache per process, injected into the engines. Entries for a version must
be evicted whenever that version's graph is rewritten in place; the runtime's
save and update operations do this. Compile errors are never cached.
"""

import logging
from collections.abc import Callable
from typing import Any

from agentflow.errors import GraphValidationError
from agentflow.graph.compiler import CompiledGraph, CompileResult
from agentflow.graph.edge import GraphDefinition

logger = logging.getLogger(__name__)

Compiler = Callable[[GraphDefinition | dict[str, Any]], CompileResult]


class CompiledGraphCache:
    def __init__(self) -> None:
        self._graphs: dict[str, CompiledGraph] = {}

    def get(self, version_id: str) -> CompiledGraph | None:
        return self._graphs.get(version_id)

    def get_or_compile(
        self,
        version_id: str,
        definition: GraphDefinition | dict[str, Any],
        compiler: Compiler,
    ) -> CompiledGraph:
        """
        Return the cached graph for a version, compiling it on a miss.

        Raises:
            GraphValidationError: the definition does not compile
        """
        graph = self._graphs.get(version_id)
        if graph is not None:
            return graph

        result = compiler(definition)
        if not result.valid:
            raise GraphValidationError(result.errors)

        self._graphs[version_id] = result.graph
        logger.debug(f"Compiled and cached graph for version {version_id}")
        return result.graph

    def invalidate(self, version_id: str | None = None) -> None:
        """Evict one version, or everything when ``version_id`` is None."""
        if version_id is None:
            self._graphs.clear()
        else:
            self._graphs.pop(version_id, None)

    def __contains__(self, version_id: object) -> bool:
        return version_id in self._graphs

    def __len__(self) -> int:
        return len(self._graphs)
