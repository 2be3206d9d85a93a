"""
Node Kinds - The closed set of node types a graph can contain.

Two levels share one vocabulary:

Agent level (steps inside a single Agent run):
- trigger: entry point, passes the run input through
- agent: one LLM call ("agent/LLM" and "agent-LLM" are accepted aliases)
- tool: one tool call
- decision: boolean placeholder evaluator
- action / transform: pass-through placeholders
- delay: sleep for a configured number of milliseconds

Scenario level (orchestration of Agents):
- scenario-trigger, scenario-agent, scenario-decision,
  scenario-parallel, scenario-transform, scenario-end

Every kind is its own pydantic model carrying a typed config, and the union is
discriminated on ``type`` so an unknown kind fails validation instead of
falling through a string switch at run time.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, model_validator


class NodeType(StrEnum):
    """Node type tags as stored in graph definitions."""

    TRIGGER = "trigger"
    LLM = "agent"
    LLM_LEGACY = "agent/LLM"
    LLM_ALIAS = "agent-LLM"
    TOOL = "tool"
    DECISION = "decision"
    ACTION = "action"
    TRANSFORM = "transform"
    DELAY = "delay"

    SCENARIO_TRIGGER = "scenario-trigger"
    SCENARIO_AGENT = "scenario-agent"
    SCENARIO_DECISION = "scenario-decision"
    SCENARIO_PARALLEL = "scenario-parallel"
    SCENARIO_TRANSFORM = "scenario-transform"
    SCENARIO_END = "scenario-end"


AGENT_NODE_TYPES = frozenset(
    {
        NodeType.TRIGGER,
        NodeType.LLM,
        NodeType.LLM_LEGACY,
        NodeType.LLM_ALIAS,
        NodeType.TOOL,
        NodeType.DECISION,
        NodeType.ACTION,
        NodeType.TRANSFORM,
        NodeType.DELAY,
    }
)

SCENARIO_NODE_TYPES = frozenset(
    {
        NodeType.SCENARIO_TRIGGER,
        NodeType.SCENARIO_AGENT,
        NodeType.SCENARIO_DECISION,
        NodeType.SCENARIO_PARALLEL,
        NodeType.SCENARIO_TRANSFORM,
        NodeType.SCENARIO_END,
    }
)


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------


class NodeConfig(BaseModel):
    """Base config. Unknown keys are kept so editor metadata survives a round trip."""

    model_config = {"extra": "allow", "populate_by_name": True}


class LLMNodeConfig(NodeConfig):
    provider_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("llmProviderId", "providerId", "provider_id"),
    )
    prompt: str | None = None
    system_prompt: str | None = Field(
        default=None, validation_alias=AliasChoices("systemPrompt", "system_prompt")
    )
    temperature: float | None = None
    max_tokens: int | None = Field(
        default=None, validation_alias=AliasChoices("maxTokens", "max_tokens")
    )


class ToolNodeConfig(NodeConfig):
    tool_id: str | None = Field(default=None, validation_alias=AliasChoices("toolId", "tool_id"))
    input: Any = Field(default_factory=dict)


class DecisionNodeConfig(NodeConfig):
    condition: str | None = None


class DelayNodeConfig(NodeConfig):
    delay_ms: int | None = Field(default=None, validation_alias=AliasChoices("delayMs", "delay_ms"))


class ScenarioTriggerConfig(NodeConfig):
    trigger_type: str | None = Field(
        default=None, validation_alias=AliasChoices("triggerType", "trigger_type")
    )
    trigger_config: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("triggerConfig", "trigger_config")
    )


class ScenarioAgentConfig(NodeConfig):
    agent_id: str | None = Field(
        default=None, validation_alias=AliasChoices("agentId", "agent_id")
    )
    agent_name: str = Field(default="", validation_alias=AliasChoices("agentName", "agent_name"))
    input: dict[str, Any] = Field(default_factory=dict)


class DecisionBranch(BaseModel):
    """One option of a scenario-decision node, e.g. ``{{x}} == "billing"``."""

    condition: str
    label: str = ""

    model_config = {"extra": "allow"}


class ScenarioDecisionConfig(NodeConfig):
    branches: list[DecisionBranch] = Field(default_factory=list)


class ScenarioParallelConfig(NodeConfig):
    agents: list[ScenarioAgentConfig] = Field(default_factory=list)
    join_policy: Literal["settle_all", "all_or_nothing"] | None = Field(
        default=None, validation_alias=AliasChoices("joinPolicy", "join_policy")
    )


class ScenarioTransformConfig(NodeConfig):
    transform_type: str | None = Field(
        default=None, validation_alias=AliasChoices("transformType", "transform_type")
    )
    transform_config: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("transformConfig", "transform_config"),
    )


class ScenarioEndConfig(NodeConfig):
    output: Any = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class Position(BaseModel):
    """Editor canvas position. Never read by the engine."""

    x: float = 0
    y: float = 0


class BaseNode(BaseModel):
    """
    Fields shared by every node kind.

    Accepts both the flat shape ``{id, type, label, config}`` and the editor's
    nested shape ``{id, type, data: {label, config}, position}``.
    """

    id: str
    label: str = ""
    description: str = ""
    position: Position | None = None

    model_config = {"extra": "allow"}

    @model_validator(mode="before")
    @classmethod
    def _lift_editor_data(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        nested = data.pop("data", None)
        if isinstance(nested, dict):
            for key in ("label", "description", "config"):
                if key in nested and key not in data:
                    data[key] = nested[key]
        if data.get("config") is None:
            data["config"] = {}
        if data.get("label") is None:
            data["label"] = ""
        return data


class TriggerNode(BaseNode):
    type: Literal["trigger"]
    config: NodeConfig = Field(default_factory=NodeConfig)


class LLMNode(BaseNode):
    type: Literal["agent", "agent/LLM", "agent-LLM"]
    config: LLMNodeConfig = Field(default_factory=LLMNodeConfig)


class ToolNode(BaseNode):
    type: Literal["tool"]
    config: ToolNodeConfig = Field(default_factory=ToolNodeConfig)


class DecisionNode(BaseNode):
    type: Literal["decision"]
    config: DecisionNodeConfig = Field(default_factory=DecisionNodeConfig)


class ActionNode(BaseNode):
    type: Literal["action"]
    config: NodeConfig = Field(default_factory=NodeConfig)


class TransformNode(BaseNode):
    type: Literal["transform"]
    config: NodeConfig = Field(default_factory=NodeConfig)


class DelayNode(BaseNode):
    type: Literal["delay"]
    config: DelayNodeConfig = Field(default_factory=DelayNodeConfig)


class ScenarioTriggerNode(BaseNode):
    type: Literal["scenario-trigger"]
    config: ScenarioTriggerConfig = Field(default_factory=ScenarioTriggerConfig)


class ScenarioAgentNode(BaseNode):
    type: Literal["scenario-agent"]
    config: ScenarioAgentConfig = Field(default_factory=ScenarioAgentConfig)


class ScenarioDecisionNode(BaseNode):
    type: Literal["scenario-decision"]
    config: ScenarioDecisionConfig = Field(default_factory=ScenarioDecisionConfig)


class ScenarioParallelNode(BaseNode):
    type: Literal["scenario-parallel"]
    config: ScenarioParallelConfig = Field(default_factory=ScenarioParallelConfig)


class ScenarioTransformNode(BaseNode):
    type: Literal["scenario-transform"]
    config: ScenarioTransformConfig = Field(default_factory=ScenarioTransformConfig)


class ScenarioEndNode(BaseNode):
    type: Literal["scenario-end"]
    config: ScenarioEndConfig = Field(default_factory=ScenarioEndConfig)


AgentNode = Annotated[
    TriggerNode | LLMNode | ToolNode | DecisionNode | ActionNode | TransformNode | DelayNode,
    Field(discriminator="type"),
]

ScenarioNode = Annotated[
    ScenarioTriggerNode
    | ScenarioAgentNode
    | ScenarioDecisionNode
    | ScenarioParallelNode
    | ScenarioTransformNode
    | ScenarioEndNode,
    Field(discriminator="type"),
]

Node = Annotated[
    TriggerNode
    | LLMNode
    | ToolNode
    | DecisionNode
    | ActionNode
    | TransformNode
    | DelayNode
    | ScenarioTriggerNode
    | ScenarioAgentNode
    | ScenarioDecisionNode
    | ScenarioParallelNode
    | ScenarioTransformNode
    | ScenarioEndNode,
    Field(discriminator="type"),
]

node_adapter: TypeAdapter[Node] = TypeAdapter(Node)


def parse_node(data: dict[str, Any]) -> Node:
    """Validate a raw node dict into its concrete node model."""
    return node_adapter.validate_python(data)
