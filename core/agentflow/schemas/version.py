"""Definition and version schemas for Agents and Scenarios."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class DefinitionKind(StrEnum):
    AGENT = "agent"
    SCENARIO = "scenario"


class Definition(BaseModel):
    """An Agent or a Scenario. Owns many versions, exactly one of them active."""

    id: str
    kind: DefinitionKind
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"extra": "allow"}


class DefinitionVersion(BaseModel):
    """An immutable snapshot of a definition's graph."""

    id: str
    definition_id: str
    kind: DefinitionKind
    version: int
    name: str | None = None
    description: str | None = None
    graph: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = False
    created_at: datetime | None = None

    model_config = {"extra": "allow"}
