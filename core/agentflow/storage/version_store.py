"""
Version Store - Agent and Scenario definitions with their versions.

Invariant: every definition has exactly one active version. Saving a new
version or activating an old one deactivates the siblings inside the same
transaction that activates the target, so readers never observe zero or two
active versions.

When a definition is found without an active version on update, the
configured recovery policy decides what happens:
- "fail" (default): log at ERROR and raise NoActiveVersionError
- "repair": log at ERROR and insert an active "Recovery version"
"""

import logging
from typing import Any

from sqlalchemy import Connection, Row, func, select, update

from agentflow.config import RECOVERY_POLICIES
from agentflow.errors import (
    DefinitionNotFoundError,
    GraphValidationError,
    NoActiveVersionError,
    VersionNotFoundError,
)
from agentflow.graph.edge import GraphDefinition
from agentflow.schemas.version import Definition, DefinitionKind, DefinitionVersion
from agentflow.storage.database import Database
from agentflow.storage.execution_store import as_utc, dumps, loads, new_id, utcnow
from agentflow.storage.schema import definition_versions_table, definitions_table

logger = logging.getLogger(__name__)

RECOVERY_VERSION_NAME = "Recovery version"
RECOVERY_VERSION_DESCRIPTION = "Auto-created to repair data inconsistency"

_versions = definition_versions_table


def _graph_to_json(graph: GraphDefinition | dict[str, Any] | None) -> str:
    if graph is None:
        return dumps({"nodes": [], "edges": []})
    if isinstance(graph, GraphDefinition):
        return dumps(graph.to_json_dict())
    return dumps(graph)


def _version_from_row(row: Row) -> DefinitionVersion:
    return DefinitionVersion(
        id=row.id,
        definition_id=row.definition_id,
        kind=DefinitionKind(row.kind),
        version=row.version,
        name=row.name,
        description=row.description,
        graph=loads(row.graph_json) or {},
        is_active=bool(row.is_active),
        created_at=as_utc(row.created_at),
    )


def _definition_from_row(row: Row) -> Definition:
    return Definition(
        id=row.id,
        kind=DefinitionKind(row.kind),
        name=row.name,
        description=row.description,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class VersionStore:
    """SQL-backed store for definitions and their immutable versions."""

    def __init__(self, db: Database, recovery_policy: str = "fail"):
        if recovery_policy not in RECOVERY_POLICIES:
            raise ValueError(
                f"Invalid recovery policy '{recovery_policy}'. Valid: {RECOVERY_POLICIES}"
            )
        self.db = db
        self.recovery_policy = recovery_policy

    # === Definitions ===

    def create_definition(
        self,
        kind: DefinitionKind | str,
        name: str,
        graph: GraphDefinition | dict[str, Any] | None = None,
        description: str | None = None,
        definition_id: str | None = None,
    ) -> DefinitionVersion:
        """Create a definition together with its active version 1, atomically."""
        kind = DefinitionKind(kind)
        definition_id = definition_id or new_id()
        version_id = new_id()
        now = utcnow()
        with self.db.transaction() as conn:
            conn.execute(
                definitions_table.insert().values(
                    id=definition_id,
                    kind=kind.value,
                    name=name,
                    description=description,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.execute(
                _versions.insert().values(
                    id=version_id,
                    definition_id=definition_id,
                    kind=kind.value,
                    version=1,
                    name="Initial version",
                    graph_json=_graph_to_json(graph),
                    is_active=True,
                    created_at=now,
                )
            )
        logger.info(f"✓ Created {kind} '{name}' ({definition_id})")
        return self.get_version(version_id)

    def get_definition(self, definition_id: str) -> Definition | None:
        with self.db.connection() as conn:
            row = conn.execute(
                select(definitions_table).where(definitions_table.c.id == definition_id)
            ).first()
        return _definition_from_row(row) if row is not None else None

    # === Versions ===

    def get_version(self, version_id: str) -> DefinitionVersion | None:
        with self.db.connection() as conn:
            row = conn.execute(select(_versions).where(_versions.c.id == version_id)).first()
        return _version_from_row(row) if row is not None else None

    def get_active_version(self, definition_id: str) -> DefinitionVersion | None:
        """Newest active version. Deterministic even if the invariant was ever violated."""
        with self.db.connection() as conn:
            row = self._select_active(conn, definition_id)
        return _version_from_row(row) if row is not None else None

    def list_versions(self, definition_id: str) -> list[DefinitionVersion]:
        with self.db.connection() as conn:
            rows = conn.execute(
                select(_versions)
                .where(_versions.c.definition_id == definition_id)
                .order_by(_versions.c.version)
            ).all()
        return [_version_from_row(row) for row in rows]

    def save_version(
        self,
        definition_id: str,
        graph: GraphDefinition | dict[str, Any],
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        """Insert a new active version and deactivate every sibling, in one transaction."""
        version_id = new_id()
        with self.db.transaction() as conn:
            definition = self._require_definition(conn, definition_id)
            next_version = self._next_version(conn, definition_id)
            self._deactivate_siblings(conn, definition_id)
            conn.execute(
                _versions.insert().values(
                    id=version_id,
                    definition_id=definition_id,
                    kind=definition.kind,
                    version=next_version,
                    name=name,
                    description=description,
                    graph_json=_graph_to_json(graph),
                    is_active=True,
                    created_at=utcnow(),
                )
            )
            self._touch(conn, definition_id)
        logger.info(f"✓ Saved version {next_version} of {definition_id}")
        return self.get_version(version_id)

    def activate_version(self, version_id: str) -> DefinitionVersion:
        """Make an existing version the active one."""
        with self.db.transaction() as conn:
            row = conn.execute(select(_versions).where(_versions.c.id == version_id)).first()
            if row is None:
                raise VersionNotFoundError(f"Version not found: {version_id}")
            self._deactivate_siblings(conn, row.definition_id)
            conn.execute(
                update(_versions).where(_versions.c.id == version_id).values(is_active=True)
            )
        return self.get_version(version_id)

    def update_definition(
        self,
        definition_id: str,
        graph: GraphDefinition | dict[str, Any] | None,
        name: str | None = None,
        description: str | None = None,
    ) -> DefinitionVersion:
        """
        Overwrite the graph of the active version in place.

        Callers must evict the returned version id from any compiled-graph
        cache. Scenario graphs without nodes are rejected.
        """
        with self.db.transaction() as conn:
            definition = self._require_definition(conn, definition_id)

            if definition.kind == DefinitionKind.SCENARIO.value:
                if isinstance(graph, GraphDefinition):
                    nodes = graph.nodes
                else:
                    nodes = (graph or {}).get("nodes")
                if not nodes:
                    raise GraphValidationError(
                        ["Cannot save scenario with no nodes. Please add at least a trigger node."]
                    )

            active = self._select_active(conn, definition_id)
            if active is None:
                active = self._recover(conn, definition, graph)

            self._deactivate_siblings(conn, definition_id, keep=active.id)
            conn.execute(
                update(_versions)
                .where(_versions.c.id == active.id)
                .values(graph_json=_graph_to_json(graph))
            )
            self._touch(conn, definition_id, name=name, description=description)
            version_id = active.id

        return self.get_version(version_id)

    # === Internals ===

    def _recover(
        self, conn: Connection, definition: Row, graph: GraphDefinition | dict[str, Any] | None
    ) -> Row:
        logger.error(
            f"✗ Data integrity error: {definition.kind} {definition.id} "
            f"({definition.name}) has no active version"
        )
        if self.recovery_policy != "repair":
            raise NoActiveVersionError(
                f"{definition.kind.capitalize()} {definition.id} has no active version"
            )

        version_id = new_id()
        conn.execute(
            _versions.insert().values(
                id=version_id,
                definition_id=definition.id,
                kind=definition.kind,
                version=self._next_version(conn, definition.id),
                name=RECOVERY_VERSION_NAME,
                description=RECOVERY_VERSION_DESCRIPTION,
                graph_json=_graph_to_json(graph),
                is_active=True,
                created_at=utcnow(),
            )
        )
        logger.warning(f"⚠ Created recovery version {version_id} for {definition.id}")
        return conn.execute(select(_versions).where(_versions.c.id == version_id)).one()

    @staticmethod
    def _select_active(conn: Connection, definition_id: str) -> Row | None:
        return conn.execute(
            select(_versions)
            .where(_versions.c.definition_id == definition_id, _versions.c.is_active.is_(True))
            .order_by(_versions.c.created_at.desc(), _versions.c.version.desc())
            .limit(1)
        ).first()

    @staticmethod
    def _require_definition(conn: Connection, definition_id: str) -> Row:
        row = conn.execute(
            select(definitions_table).where(definitions_table.c.id == definition_id)
        ).first()
        if row is None:
            raise DefinitionNotFoundError(f"Definition not found: {definition_id}")
        return row

    @staticmethod
    def _next_version(conn: Connection, definition_id: str) -> int:
        current = conn.execute(
            select(func.max(_versions.c.version)).where(_versions.c.definition_id == definition_id)
        ).scalar()
        return (current or 0) + 1

    @staticmethod
    def _deactivate_siblings(conn: Connection, definition_id: str, keep: str | None = None) -> None:
        stmt = update(_versions).where(_versions.c.definition_id == definition_id)
        if keep is not None:
            stmt = stmt.where(_versions.c.id != keep)
        conn.execute(stmt.values(is_active=False))

    @staticmethod
    def _touch(
        conn: Connection,
        definition_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        values: dict[str, Any] = {"updated_at": utcnow()}
        if name:
            values["name"] = name
        if description is not None:
            values["description"] = description
        conn.execute(
            update(definitions_table)
            .where(definitions_table.c.id == definition_id)
            .values(**values)
        )

