"""
Graph Compiler - Turns a persisted graph definition into an executable graph.

The compiler:
1. Parses every raw node into its concrete node kind
2. Checks the structural rules (non-empty, one entry node, unique ids,
   edge endpoints resolve, node kinds allowed at this level)
3. Builds a node map and an ordered adjacency list

Validation problems are collected, never raised, so a caller sees every
problem with a definition at once. Cycles are not detected: traversal relies
on a visited set instead.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from agentflow.graph.edge import EdgeSpec, GraphDefinition
from agentflow.graph.node import (
    AGENT_NODE_TYPES,
    SCENARIO_NODE_TYPES,
    Node,
    NodeType,
    parse_node,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledGraph:
    """Executable form of a graph definition. Immutable once built."""

    node_map: dict[str, Node]
    adjacency: dict[str, list[str]]
    entry_node_id: str
    edges: list[EdgeSpec] = field(default_factory=list)

    def get_node(self, node_id: str) -> Node | None:
        return self.node_map.get(node_id)

    def successors(self, node_id: str) -> list[str]:
        """Targets of the node's outgoing edges, in edge order."""
        return self.adjacency.get(node_id, [])

    def branch_targets(self, node_id: str, branch_index: int) -> list[str]:
        """Targets of outgoing edges tagged with the given branch index."""
        return [
            edge.target
            for edge in self.edges
            if edge.source == node_id and edge.branch_index == branch_index
        ]


@dataclass
class CompileResult:
    """Either a compiled graph or the list of reasons it could not be built."""

    graph: CompiledGraph | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.graph is not None and not self.errors


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


class GraphCompiler:
    """
    Compiles graph definitions for one graph level.

    Example:
        compiler = GraphCompiler(entry_type="trigger", allowed_types=AGENT_NODE_TYPES)
        result = compiler.compile({"nodes": [...], "edges": [...]})
        if not result.valid:
            print(result.errors)
    """

    def __init__(self, entry_type: str, allowed_types: Iterable[str], level: str = "agent"):
        self.entry_type = entry_type
        self.allowed_types = frozenset(str(t) for t in allowed_types)
        self.level = level

    def compile(self, definition: GraphDefinition | dict[str, Any]) -> CompileResult:
        errors: list[str] = []

        if not isinstance(definition, GraphDefinition):
            try:
                definition = GraphDefinition.model_validate(definition or {})
            except ValidationError as e:
                return CompileResult(
                    errors=[f"Malformed graph definition: {_format_validation_error(e)}"]
                )

        if not definition.nodes:
            errors.append("Graph must have at least one node")

        entry_count = sum(1 for n in definition.nodes if n.get("type") == self.entry_type)
        if definition.nodes and entry_count == 0:
            errors.append(f"Graph must have a {self.entry_type} node")
        elif entry_count > 1:
            errors.append(f"Graph can only have one {self.entry_type} node")

        node_map: dict[str, Node] = {}
        seen_ids: set[str] = set()
        for index, raw in enumerate(definition.nodes):
            node_id = raw.get("id")
            node_type = raw.get("type")
            label = f"'{node_id}'" if node_id is not None else f"at index {index}"

            if node_id is not None:
                if node_id in seen_ids:
                    errors.append(f"Duplicate node id: '{node_id}'")
                    continue
                seen_ids.add(node_id)

            if node_type not in self.allowed_types:
                errors.append(
                    f"Node {label} has type '{node_type}' which is not allowed "
                    f"in a {self.level} graph"
                )
                continue

            try:
                node = parse_node(raw)
            except ValidationError as e:
                errors.append(f"Node {label} is invalid: {_format_validation_error(e)}")
                continue
            node_map[node.id] = node

        for edge in definition.edges:
            if edge.source not in seen_ids:
                errors.append(f"Edge references non-existent source node: {edge.source}")
            if edge.target not in seen_ids:
                errors.append(f"Edge references non-existent target node: {edge.target}")

        if errors:
            logger.debug(
                "Graph compilation failed with %d error(s)", len(errors), extra={"event": "compile"}
            )
            return CompileResult(errors=errors)

        adjacency: dict[str, list[str]] = {node_id: [] for node_id in node_map}
        for edge in definition.edges:
            adjacency[edge.source].append(edge.target)

        entry_node_id = next(n.id for n in node_map.values() if n.type == self.entry_type)

        return CompileResult(
            graph=CompiledGraph(
                node_map=node_map,
                adjacency=adjacency,
                entry_node_id=entry_node_id,
                edges=list(definition.edges),
            )
        )


agent_compiler = GraphCompiler(
    entry_type=NodeType.TRIGGER, allowed_types=AGENT_NODE_TYPES, level="agent"
)
scenario_compiler = GraphCompiler(
    entry_type=NodeType.SCENARIO_TRIGGER, allowed_types=SCENARIO_NODE_TYPES, level="scenario"
)


def compile_agent_graph(definition: GraphDefinition | dict[str, Any]) -> CompileResult:
    """Compile an Agent-level graph (entry node type ``trigger``)."""
    return agent_compiler.compile(definition)


def compile_scenario_graph(definition: GraphDefinition | dict[str, Any]) -> CompileResult:
    """Compile a Scenario-level graph (entry node type ``scenario-trigger``)."""
    return scenario_compiler.compile(definition)
