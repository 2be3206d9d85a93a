"""Tests for the ExecutionRuntime facade: wiring, lookups and cache eviction."""

import pytest

from agentflow import ExecutionRuntime
from agentflow.errors import DefinitionNotFoundError, ExecutionNotFoundError
from agentflow.llm import MockLLMProvider
from agentflow.schemas.execution import AgentExecution, ExecutionStatus, ScenarioExecution
from agentflow.storage import Database


def llm_graph(provider_id):
    return {
        "nodes": [
            {"id": "start", "type": "trigger"},
            {"id": "llm", "type": "agent", "config": {"llmProviderId": provider_id}},
        ],
        "edges": [{"source": "start", "target": "llm"}],
    }


def single_agent_scenario(agent_id):
    return {
        "nodes": [
            {"id": "start", "type": "scenario-trigger"},
            {"id": "run", "type": "scenario-agent", "config": {"agentId": agent_id}},
            {
                "id": "done",
                "type": "scenario-end",
                "config": {"output": {"reply": "{{run.output.results.llm.result}}"}},
            },
        ],
        "edges": [
            {"source": "start", "target": "run"},
            {"source": "run", "target": "done"},
        ],
    }


@pytest.fixture
def runtime(engine_config, llm, tools):
    llm.register("v1", MockLLMProvider("first answer"))
    llm.register("v2", MockLLMProvider("second answer"))
    with ExecutionRuntime(
        config=engine_config, database=Database.in_memory(), llm=llm, tools=tools
    ) as rt:
        yield rt


@pytest.mark.asyncio
async def test_scenario_round_trip(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))
    scenario = runtime.create_scenario("Support", single_agent_scenario(agent.definition_id))

    result = await runtime.execute_scenario(scenario.definition_id, {"message": "hi"})

    assert result.status == ExecutionStatus.COMPLETED, result.error
    assert result.output == {"reply": "first answer"}

    record = runtime.get_execution(result.scenario_execution_id)
    assert isinstance(record, ScenarioExecution)
    assert record.scenario_version_id == scenario.id

    children = runtime.get_agent_executions(result.scenario_execution_id)
    assert len(children) == 1
    child = runtime.get_execution(children[0].id)
    assert isinstance(child, AgentExecution)
    assert child.scenario_node_id == "run"

    steps = runtime.get_execution_steps(child.id)
    assert [s.node_id for s in steps] == ["llm"]

    assert runtime.cancel_execution(result.scenario_execution_id) is False


@pytest.mark.asyncio
async def test_execute_agent_directly(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))

    result = await runtime.execute_agent(agent.id, {"message": "hi"})

    assert result.success
    assert [s.node_id for s in result.steps] == ["llm"]


@pytest.mark.asyncio
async def test_update_in_place_evicts_cached_graph(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))
    first = await runtime.execute_agent(agent.id)
    assert agent.id in runtime.cache

    updated = runtime.update_agent_definition(agent.definition_id, llm_graph("v2"))
    second = await runtime.execute_agent(agent.id)

    assert updated.id == agent.id
    assert first.output["results"]["llm"]["result"] == "first answer"
    assert second.output["results"]["llm"]["result"] == "second answer"


@pytest.mark.asyncio
async def test_saved_version_becomes_active(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))
    scenario = runtime.create_scenario("Support", single_agent_scenario(agent.definition_id))

    saved = runtime.save_agent_version(agent.definition_id, llm_graph("v2"), name="v2")
    result = await runtime.execute_scenario(scenario.definition_id)

    assert saved.version == 2
    assert result.output == {"reply": "second answer"}


@pytest.mark.asyncio
async def test_scenario_update_and_save(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))
    scenario = runtime.create_scenario("Support", single_agent_scenario(agent.definition_id))
    await runtime.execute_scenario(scenario.definition_id)
    assert scenario.id in runtime.cache

    graph = single_agent_scenario(agent.definition_id)
    graph["nodes"][2]["config"]["output"] = {"reply": "fixed"}
    runtime.update_scenario_definition(scenario.definition_id, graph)
    assert scenario.id not in runtime.cache

    result = await runtime.execute_scenario(scenario.definition_id)
    assert result.output == {"reply": "fixed"}

    saved = runtime.save_scenario_version(scenario.definition_id, graph)
    assert saved.version == 2
    assert scenario.id not in runtime.cache


def test_kind_mismatch_is_rejected(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))

    with pytest.raises(DefinitionNotFoundError, match="Scenario not found"):
        runtime.update_scenario_definition(agent.definition_id, {"nodes": [{"id": "x"}]})
    with pytest.raises(DefinitionNotFoundError):
        runtime.save_agent_version("missing", llm_graph("v1"))


def test_unknown_execution(runtime):
    with pytest.raises(ExecutionNotFoundError):
        runtime.get_execution("nope")
    with pytest.raises(ExecutionNotFoundError):
        runtime.cancel_execution("nope")


@pytest.mark.asyncio
async def test_clear_cache(runtime):
    agent = runtime.create_agent("Responder", llm_graph("v1"))
    await runtime.execute_agent(agent.id)

    runtime.clear_cache()

    assert len(runtime.cache) == 0


@pytest.mark.asyncio
async def test_builtin_tools_registered_by_default(engine_config):
    runtime = ExecutionRuntime(config=engine_config, database=Database.in_memory())
    try:
        assert runtime.tools.has_tool("http-request")
        assert runtime.tools.has_tool("data-transform")
        assert runtime.versions.recovery_policy == "fail"
    finally:
        await runtime.aclose()


def test_database_from_config_url(engine_config, tmp_path):
    engine_config.database_url = f"sqlite:///{tmp_path / 'nested' / 'agentflow.db'}"

    with ExecutionRuntime(config=engine_config) as runtime:
        runtime.create_agent("A")

    assert (tmp_path / "nested" / "agentflow.db").exists()


@pytest.mark.asyncio
async def test_async_context_releases_http_client(engine_config):
    async with ExecutionRuntime(config=engine_config, database=Database.in_memory()) as runtime:
        client = runtime.tools.http_client
        assert not client.is_closed

    assert client.is_closed
