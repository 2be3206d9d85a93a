"""
Execution Store - Persists the Scenario → Agent → Step audit trail.

Records are inserted once in ``running`` and finalized exactly once. A record
flipped to ``cancelled`` while its traversal is still in flight keeps that
status on finalization, but still gets its completion time, duration and
output or error stamped.
"""

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Row, Table, select, update

from agentflow.errors import ExecutionNotFoundError
from agentflow.schemas.execution import (
    TERMINAL_STATUSES,
    AgentExecution,
    ExecutionStatus,
    ScenarioExecution,
    StepExecution,
)
from agentflow.storage.database import Database
from agentflow.storage.schema import (
    agent_executions_table,
    scenario_executions_table,
    step_executions_table,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we write is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def dumps(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)


def loads(text: str | None) -> Any:
    if text is None:
        return None
    return json.loads(text)


def new_id() -> str:
    return str(uuid.uuid4())


def _common_fields(row: Row) -> dict[str, Any]:
    return {
        "id": row.id,
        "status": ExecutionStatus(row.status),
        "input": loads(row.input_json),
        "output": loads(row.output_json),
        "error": row.error,
        "started_at": as_utc(row.started_at),
        "completed_at": as_utc(row.completed_at),
        "duration_ms": row.duration_ms,
    }


def _scenario_from_row(row: Row) -> ScenarioExecution:
    return ScenarioExecution(
        **_common_fields(row),
        scenario_version_id=row.scenario_version_id,
        conversation_id=row.conversation_id,
        triggered_by=row.triggered_by,
    )


def _agent_from_row(row: Row) -> AgentExecution:
    return AgentExecution(
        **_common_fields(row),
        agent_version_id=row.agent_version_id,
        scenario_execution_id=row.scenario_execution_id,
        scenario_node_id=row.scenario_node_id,
    )


def _step_from_row(row: Row) -> StepExecution:
    return StepExecution(
        **_common_fields(row),
        agent_execution_id=row.agent_execution_id,
        step_index=row.step_index,
        node_id=row.node_id,
        node_type=row.node_type,
        node_label=row.node_label,
    )


class ExecutionStore:
    """SQL-backed store for execution records."""

    def __init__(self, db: Database):
        self.db = db

    # === Scenario executions ===

    def create_scenario_execution(
        self,
        scenario_version_id: str,
        input: Any,
        conversation_id: str | None = None,
        triggered_by: str | None = None,
    ) -> ScenarioExecution:
        execution_id = new_id()
        with self.db.transaction() as conn:
            conn.execute(
                scenario_executions_table.insert().values(
                    id=execution_id,
                    scenario_version_id=scenario_version_id,
                    status=ExecutionStatus.RUNNING.value,
                    input_json=dumps(input),
                    started_at=utcnow(),
                    conversation_id=conversation_id,
                    triggered_by=triggered_by,
                )
            )
        return self.get_scenario_execution(execution_id)

    def finalize_scenario_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: str | None = None,
    ) -> ScenarioExecution:
        self._finalize(scenario_executions_table, execution_id, status, output, error)
        return self.get_scenario_execution(execution_id)

    def get_scenario_execution(self, execution_id: str) -> ScenarioExecution | None:
        with self.db.connection() as conn:
            row = conn.execute(
                select(scenario_executions_table).where(
                    scenario_executions_table.c.id == execution_id
                )
            ).first()
        return _scenario_from_row(row) if row is not None else None

    # === Agent executions ===

    def create_agent_execution(
        self,
        agent_version_id: str,
        input: Any,
        scenario_execution_id: str | None = None,
        scenario_node_id: str | None = None,
    ) -> AgentExecution:
        execution_id = new_id()
        with self.db.transaction() as conn:
            conn.execute(
                agent_executions_table.insert().values(
                    id=execution_id,
                    agent_version_id=agent_version_id,
                    scenario_execution_id=scenario_execution_id,
                    scenario_node_id=scenario_node_id,
                    status=ExecutionStatus.RUNNING.value,
                    input_json=dumps(input),
                    started_at=utcnow(),
                )
            )
        return self.get_agent_execution(execution_id)

    def finalize_agent_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: str | None = None,
    ) -> AgentExecution:
        self._finalize(agent_executions_table, execution_id, status, output, error)
        return self.get_agent_execution(execution_id)

    def get_agent_execution(self, execution_id: str) -> AgentExecution | None:
        with self.db.connection() as conn:
            row = conn.execute(
                select(agent_executions_table).where(agent_executions_table.c.id == execution_id)
            ).first()
        return _agent_from_row(row) if row is not None else None

    def list_agent_executions(self, scenario_execution_id: str) -> list[AgentExecution]:
        with self.db.connection() as conn:
            rows = conn.execute(
                select(agent_executions_table)
                .where(agent_executions_table.c.scenario_execution_id == scenario_execution_id)
                .order_by(agent_executions_table.c.started_at, agent_executions_table.c.id)
            ).all()
        return [_agent_from_row(row) for row in rows]

    # === Step executions ===

    def create_step(
        self,
        agent_execution_id: str,
        step_index: int,
        node_id: str,
        node_type: str,
        node_label: str | None,
        input: Any,
    ) -> StepExecution:
        step_id = new_id()
        with self.db.transaction() as conn:
            conn.execute(
                step_executions_table.insert().values(
                    id=step_id,
                    agent_execution_id=agent_execution_id,
                    step_index=step_index,
                    node_id=node_id,
                    node_type=node_type,
                    node_label=node_label,
                    status=ExecutionStatus.RUNNING.value,
                    input_json=dumps(input),
                    started_at=utcnow(),
                )
            )
        return self.get_step(step_id)

    def finalize_step(
        self,
        step_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: str | None = None,
    ) -> StepExecution:
        self._finalize(step_executions_table, step_id, status, output, error)
        return self.get_step(step_id)

    def get_step(self, step_id: str) -> StepExecution | None:
        with self.db.connection() as conn:
            row = conn.execute(
                select(step_executions_table).where(step_executions_table.c.id == step_id)
            ).first()
        return _step_from_row(row) if row is not None else None

    def list_steps(self, agent_execution_id: str) -> list[StepExecution]:
        with self.db.connection() as conn:
            rows = conn.execute(
                select(step_executions_table)
                .where(step_executions_table.c.agent_execution_id == agent_execution_id)
                .order_by(step_executions_table.c.step_index)
            ).all()
        return [_step_from_row(row) for row in rows]

    # === Cancellation ===

    def cancel_execution(self, execution_id: str) -> bool:
        """
        Flip a non-terminal Scenario, Agent or Step record to ``cancelled``.

        Returns False when the record is already terminal. Traversal that is
        still running is not interrupted.
        """
        terminal = [s.value for s in TERMINAL_STATUSES]
        for table in (scenario_executions_table, agent_executions_table, step_executions_table):
            with self.db.transaction() as conn:
                exists = conn.execute(
                    select(table.c.id).where(table.c.id == execution_id)
                ).first()
                if exists is None:
                    continue
                result = conn.execute(
                    update(table)
                    .where(table.c.id == execution_id, table.c.status.not_in(terminal))
                    .values(status=ExecutionStatus.CANCELLED.value)
                )
            cancelled = result.rowcount > 0
            if cancelled:
                logger.info(f"⊘ Execution {execution_id} cancelled")
            return cancelled
        raise ExecutionNotFoundError(f"Execution not found: {execution_id}")

    # === Internals ===

    def _finalize(
        self,
        table: Table,
        record_id: str,
        status: ExecutionStatus,
        output: Any,
        error: str | None,
    ) -> None:
        with self.db.transaction() as conn:
            row = conn.execute(
                select(table.c.status, table.c.started_at, table.c.completed_at).where(
                    table.c.id == record_id
                )
            ).first()
            if row is None:
                raise ExecutionNotFoundError(f"{table.name} record not found: {record_id}")

            current = ExecutionStatus(row.status)
            if current.is_terminal and row.completed_at is not None:
                logger.warning(
                    f"⚠ {table.name} {record_id} already finalized as {current}, "
                    f"ignoring {status}"
                )
                return
            if current == ExecutionStatus.CANCELLED:
                status = ExecutionStatus.CANCELLED

            completed_at = utcnow()
            started_at = as_utc(row.started_at)
            duration_ms = int((completed_at - started_at).total_seconds() * 1000)

            conn.execute(
                update(table)
                .where(table.c.id == record_id)
                .values(
                    status=status.value,
                    output_json=dumps(output),
                    error=error,
                    completed_at=completed_at,
                    duration_ms=duration_ms,
                )
            )
