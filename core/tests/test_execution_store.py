"""Tests for execution records: finalization and cancellation."""

from datetime import UTC, datetime

import pytest

from agentflow.errors import ExecutionNotFoundError
from agentflow.schemas.execution import ExecutionStatus


@pytest.fixture
def agent_version(versions):
    return versions.create_definition("agent", "A", {"nodes": [], "edges": []})


@pytest.fixture
def scenario_version(versions):
    return versions.create_definition("scenario", "S", {"nodes": [], "edges": []})


class TestScenarioExecutions:
    def test_create_and_finalize(self, executions, scenario_version):
        record = executions.create_scenario_execution(
            scenario_version.id, {"message": "hi"}, conversation_id="c1", triggered_by="api"
        )

        assert record.status == ExecutionStatus.RUNNING
        assert record.input == {"message": "hi"}
        assert record.started_at.tzinfo is not None
        assert record.completed_at is None

        done = executions.finalize_scenario_execution(
            record.id, ExecutionStatus.COMPLETED, output={"at": datetime(2024, 1, 1, tzinfo=UTC)}
        )

        assert done.status == ExecutionStatus.COMPLETED
        assert done.output == {"at": "2024-01-01 00:00:00+00:00"}
        assert done.completed_at >= done.started_at
        assert done.duration_ms >= 0
        assert done.triggered_by == "api"

    def test_finalizes_only_once(self, executions, scenario_version, caplog):
        record = executions.create_scenario_execution(scenario_version.id, {})
        executions.finalize_scenario_execution(record.id, ExecutionStatus.FAILED, error="boom")

        again = executions.finalize_scenario_execution(
            record.id, ExecutionStatus.COMPLETED, output={"late": True}
        )

        assert again.status == ExecutionStatus.FAILED
        assert again.error == "boom"
        assert again.output is None
        assert "already finalized" in caplog.text

    def test_finalize_unknown(self, executions):
        with pytest.raises(ExecutionNotFoundError):
            executions.finalize_scenario_execution("nope", ExecutionStatus.COMPLETED)

    def test_get_unknown(self, executions):
        assert executions.get_scenario_execution("nope") is None


class TestAgentExecutions:
    def test_children_of_a_scenario(self, executions, scenario_version, agent_version):
        parent = executions.create_scenario_execution(scenario_version.id, {})
        first = executions.create_agent_execution(
            agent_version.id, {"n": 1}, scenario_execution_id=parent.id, scenario_node_id="a"
        )
        second = executions.create_agent_execution(
            agent_version.id, {"n": 2}, scenario_execution_id=parent.id, scenario_node_id="b"
        )
        executions.create_agent_execution(agent_version.id, {"standalone": True})

        children = executions.list_agent_executions(parent.id)

        assert {c.id for c in children} == {first.id, second.id}
        assert {c.scenario_node_id for c in children} == {"a", "b"}

    def test_steps_listed_by_index(self, executions, agent_version):
        run = executions.create_agent_execution(agent_version.id, {})
        for index, node_id in [(1, "second"), (0, "first"), (2, "third")]:
            executions.create_step(run.id, index, node_id, "action", None, {"input": {}})

        steps = executions.list_steps(run.id)

        assert [s.node_id for s in steps] == ["first", "second", "third"]
        assert all(s.status == ExecutionStatus.RUNNING for s in steps)

    def test_finalize_step(self, executions, agent_version):
        run = executions.create_agent_execution(agent_version.id, {})
        step = executions.create_step(run.id, 0, "n", "tool", "Tool", {"input": {}})

        failed = executions.finalize_step(step.id, ExecutionStatus.FAILED, error="bad input")

        assert failed.status == ExecutionStatus.FAILED
        assert failed.error == "bad input"
        assert failed.node_label == "Tool"
        assert failed.duration_ms is not None


class TestCancellation:
    def test_cancel_running_scenario(self, executions, scenario_version):
        record = executions.create_scenario_execution(scenario_version.id, {})

        assert executions.cancel_execution(record.id) is True
        cancelled = executions.get_scenario_execution(record.id)
        assert cancelled.status == ExecutionStatus.CANCELLED
        assert cancelled.completed_at is None

    def test_finalize_after_cancel_keeps_status(self, executions, agent_version):
        record = executions.create_agent_execution(agent_version.id, {})
        executions.cancel_execution(record.id)

        done = executions.finalize_agent_execution(
            record.id, ExecutionStatus.COMPLETED, output={"results": {}}
        )

        assert done.status == ExecutionStatus.CANCELLED
        assert done.output == {"results": {}}
        assert done.completed_at is not None
        assert done.duration_ms is not None

    def test_cancel_running_step(self, executions, agent_version):
        run = executions.create_agent_execution(agent_version.id, {})
        step = executions.create_step(run.id, 0, "wait", "delay", "Wait", {"input": {}})

        assert executions.cancel_execution(step.id) is True
        assert executions.get_step(step.id).status == ExecutionStatus.CANCELLED
        assert executions.get_agent_execution(run.id).status == ExecutionStatus.RUNNING

        done = executions.finalize_step(step.id, ExecutionStatus.COMPLETED, output={"ok": True})
        assert done.status == ExecutionStatus.CANCELLED
        assert done.completed_at is not None

    def test_cancel_terminal_is_noop(self, executions, agent_version):
        record = executions.create_agent_execution(agent_version.id, {})
        executions.finalize_agent_execution(record.id, ExecutionStatus.COMPLETED)

        assert executions.cancel_execution(record.id) is False
        assert executions.get_agent_execution(record.id).status == ExecutionStatus.COMPLETED

    def test_cancel_unknown(self, executions):
        with pytest.raises(ExecutionNotFoundError):
            executions.cancel_execution("nope")
