"""Graph structures: Nodes, Edges, compilation and the two execution engines."""

from agentflow.graph.agent_engine import AgentEngine
from agentflow.graph.cache import CompiledGraphCache
from agentflow.graph.compiler import (
    CompiledGraph,
    CompileResult,
    GraphCompiler,
    compile_agent_graph,
    compile_scenario_graph,
)
from agentflow.graph.conditions import evaluate_condition, select_branch
from agentflow.graph.edge import EdgeSpec, GraphDefinition
from agentflow.graph.node import NodeType, parse_node
from agentflow.graph.scenario_engine import ScenarioEngine
from agentflow.graph.step_executor import StepExecutor
from agentflow.graph.template import resolve, resolve_deep

__all__ = [
    # Definition
    "NodeType",
    "EdgeSpec",
    "GraphDefinition",
    "parse_node",
    # Compilation
    "CompiledGraph",
    "CompileResult",
    "GraphCompiler",
    "compile_agent_graph",
    "compile_scenario_graph",
    "CompiledGraphCache",
    # Templates and conditions
    "resolve",
    "resolve_deep",
    "evaluate_condition",
    "select_branch",
    # Execution
    "StepExecutor",
    "AgentEngine",
    "ScenarioEngine",
]
