"""SQLAlchemy table definitions for definitions, versions and execution records.

Uses SQLAlchemy Core (not ORM) so queries stay explicit and run unchanged on
SQLite and PostgreSQL. JSON payloads are stored as text.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

# === Definitions and Versions ===

definitions_table = Table(
    "definitions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("kind", String(16), nullable=False),  # agent, scenario
    Column("name", String(256), nullable=False),
    Column("description", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

definition_versions_table = Table(
    "definition_versions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("definition_id", String(64), ForeignKey("definitions.id"), nullable=False),
    Column("kind", String(16), nullable=False),
    Column("version", Integer, nullable=False),
    Column("name", String(256)),
    Column("description", Text),
    Column("graph_json", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("definition_id", "version"),
    Index("ix_definition_versions_active", "definition_id", "is_active"),
)

# === Execution Records ===

scenario_executions_table = Table(
    "scenario_executions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column(
        "scenario_version_id",
        String(64),
        ForeignKey("definition_versions.id"),
        nullable=False,
    ),
    Column("status", String(16), nullable=False),
    Column("input_json", Text),
    Column("output_json", Text),
    Column("error", Text),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("completed_at", DateTime(timezone=True)),
    Column("duration_ms", Integer),
    Column("conversation_id", String(64)),
    Column("triggered_by", String(64)),
)

agent_executions_table = Table(
    "agent_executions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("scenario_execution_id", String(64), ForeignKey("scenario_executions.id")),
    Column(
        "agent_version_id",
        String(64),
        ForeignKey("definition_versions.id"),
        nullable=False,
    ),
    Column("scenario_node_id", String(128)),
    Column("status", String(16), nullable=False),
    Column("input_json", Text),
    Column("output_json", Text),
    Column("error", Text),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("completed_at", DateTime(timezone=True)),
    Column("duration_ms", Integer),
    Index("ix_agent_executions_scenario", "scenario_execution_id"),
)

step_executions_table = Table(
    "step_executions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column(
        "agent_execution_id",
        String(64),
        ForeignKey("agent_executions.id"),
        nullable=False,
    ),
    Column("step_index", Integer, nullable=False),
    Column("node_id", String(128), nullable=False),
    Column("node_type", String(32), nullable=False),
    Column("node_label", String(256)),
    Column("status", String(16), nullable=False),
    Column("input_json", Text),
    Column("output_json", Text),
    Column("error", Text),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("completed_at", DateTime(timezone=True)),
    Column("duration_ms", Integer),
    UniqueConstraint("agent_execution_id", "step_index"),
)
