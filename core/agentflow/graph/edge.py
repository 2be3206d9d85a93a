"""
Edge Protocol - How nodes connect in a graph.

Edges define:
1. Source and target nodes
2. An optional branch index, used by scenario-decision nodes to pick which
   outgoing edges are followed
3. Presentation metadata (label, condition text) that the engine ignores

The GraphDefinition is the persisted, editor-facing form of a graph: raw node
dicts plus edges. It is deliberately loose so a malformed node can be reported
by the compiler alongside every other problem instead of failing the whole
parse.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, Field, model_validator


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Plain sequencing
        EdgeSpec(source="trigger-1", target="llm-1")

        # Second branch of a scenario-decision
        EdgeSpec(source="router", target="billing-agent", branch_index=1)

        # Editor shape is accepted as-is
        EdgeSpec.model_validate(
            {"id": "e1", "source": "router", "target": "x", "data": {"branchIndex": 0}}
        )
    """

    id: str = ""
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")

    branch_index: int | None = Field(
        default=None,
        validation_alias=AliasChoices("branchIndex", "branch_index"),
        description="Decision branch this edge belongs to",
    )

    # Presentation only
    condition: str | None = None
    label: str | None = None

    model_config = {"extra": "allow", "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _lift_editor_data(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        nested = data.pop("data", None)
        if isinstance(nested, dict):
            for key in ("branchIndex", "branch_index", "condition", "label"):
                if key in nested and key not in data:
                    data[key] = nested[key]
        return data


class GraphDefinition(BaseModel):
    """
    A graph as stored on a definition version: ``{nodes, edges}``.

    Nodes stay as raw dicts until compilation. Edges are validated here since
    their shape carries no per-kind semantics.
    """

    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def node_ids(self) -> list[str]:
        return [str(n.get("id")) for n in self.nodes if n.get("id") is not None]

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize for storage, keeping the editor's camelCase branch key."""
        return {
            "nodes": [dict(n) for n in self.nodes],
            "edges": [
                {
                    **edge.model_dump(exclude_none=True, exclude={"branch_index"}),
                    **(
                        {"branchIndex": edge.branch_index}
                        if edge.branch_index is not None
                        else {}
                    ),
                }
                for edge in self.edges
            ],
        }
