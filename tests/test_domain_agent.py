"""Tests for the domain agents and the model-free search policy."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from travel_concierge.core.agents_builder import build_policy_agents
from travel_concierge.core.domain_agent import DomainAgent, PolicySearchAgent
from travel_concierge.core.prompts import domain_instructions
from travel_concierge.core.schemas import Domain
from travel_concierge.services.inventory import InMemoryInventory, create_all_search_tools


class ScriptedRunnable:
    """Stands in for a compiled agent graph and replays a fixed trace."""

    def __init__(self, messages: Optional[List[BaseMessage]] = None, error: Optional[Exception] = None) -> None:
        self.messages = messages or []
        self.error = error
        self.inputs: List[Dict[str, Any]] = []
        self.configs: List[Optional[Dict[str, Any]]] = []

    async def ainvoke(self, input: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.inputs.append(input)
        self.configs.append(config)
        if self.error is not None:
            raise self.error
        return {"messages": [*input["messages"], *self.messages]}


def _tool_round(name: str, call_id: str, rows: List[Dict[str, Any]], success: bool = True, error: Optional[str] = None):
    artifact = {"success": success, "data": rows, "message": "", "error": error, "search_context": {}}
    return [
        AIMessage(content="", tool_calls=[{"name": name, "args": {"query": "x"}, "id": call_id}]),
        ToolMessage(content="", artifact=artifact, tool_call_id=call_id, name=name),
    ]


def _tool_calls(messages: List[BaseMessage]) -> List[Dict[str, Any]]:
    return [call for message in messages if isinstance(message, AIMessage) for call in message.tool_calls]


# ---------------------------------------------------------------------------
# DomainAgent
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("budget, limit", [(3, 7), (6, 13)])
async def test_turn_budget_becomes_the_recursion_limit(budget: int, limit: int) -> None:
    runnable = ScriptedRunnable()
    agent = DomainAgent(Domain.ACTIVITY, runnable, turn_budget=budget)

    await agent.run("  tour a Roma  ")

    assert agent.recursion_limit == limit
    assert runnable.configs == [{"recursion_limit": limit}]
    human = runnable.inputs[0]["messages"][0]
    assert isinstance(human, HumanMessage)
    assert human.content == "tour a Roma"


async def test_records_and_final_note_come_from_the_trace() -> None:
    trace = [
        *_tool_round("search_lodging", "c1", [{"id": "h-1", "name": "Hotel Colosseo"}]),
        AIMessage(content="Found one hotel near the Colosseum."),
    ]
    agent = DomainAgent(Domain.LODGING, ScriptedRunnable(trace), turn_budget=3)

    result = await agent.run("hotel a Roma")

    assert result.success is True
    assert result.domain is Domain.LODGING
    assert [record.id for record in result.records] == ["lodging:h-1"]
    assert result.message == "Found one hotel near the Colosseum."
    assert result.execution_time_ms >= 0


async def test_default_message_counts_records() -> None:
    trace = _tool_round("search_dining", "c1", [{"id": "r-1", "name": "Enzo"}, {"id": "r-2", "name": "Pergola"}])
    agent = DomainAgent(Domain.DINING, ScriptedRunnable(trace), turn_budget=3)

    result = await agent.run("cena")

    assert result.message == "Found 2 dining options"


async def test_agent_exception_becomes_a_failed_result() -> None:
    agent = DomainAgent(Domain.TRANSPORT, ScriptedRunnable(error=RuntimeError("model unavailable")), turn_budget=6)

    result = await agent.run("transfer")

    assert result.success is False
    assert result.records == []
    assert result.message == "Transport search failed"
    assert result.error == "model unavailable"


async def test_every_search_failing_marks_the_agent_failed() -> None:
    trace = [
        *_tool_round("search_lodging", "c1", [], success=False, error="rate limited"),
        *_tool_round("lodging_semantic_search", "c2", [], success=False, error="HTTP 503"),
        AIMessage(content="The search service is down."),
    ]
    agent = DomainAgent(Domain.LODGING, ScriptedRunnable(trace), turn_budget=3)

    result = await agent.run("hotel")

    assert result.success is False
    assert result.error == "rate limited; HTTP 503"


async def test_an_empty_but_successful_search_is_still_a_success() -> None:
    trace = [*_tool_round("search_activity", "c1", []), AIMessage(content="Nothing matched.")]
    agent = DomainAgent(Domain.ACTIVITY, ScriptedRunnable(trace), turn_budget=6)

    result = await agent.run("tour")

    assert result.success is True
    assert result.records == []


def test_instructions_name_only_the_domain_tools() -> None:
    text = domain_instructions(Domain.DINING)

    assert "search_dining" in text
    assert "dining_semantic_search" in text
    assert "search_lodging" not in text


# ---------------------------------------------------------------------------
# PolicySearchAgent
# ---------------------------------------------------------------------------


async def test_enough_filtered_results_skip_the_semantic_call(sample_rows) -> None:
    agents = build_policy_agents(create_all_search_tools(InMemoryInventory(sample_rows)))
    runnable = agents[Domain.LODGING].runnable

    response = await runnable.ainvoke({"messages": [HumanMessage(content="hotel a Roma")]})
    result = await agents[Domain.LODGING].run("hotel a Roma")

    calls = _tool_calls(response["messages"])
    assert [call["name"] for call in calls] == ["search_lodging"]
    assert calls[0]["args"] == {"query": "hotel a Roma", "location": "roma"}
    assert [record.source_id for record in result.records] == ["h-1", "h-3", "h-2"]
    assert result.message == "Found 3 lodging results."


async def test_few_filtered_results_fall_back_to_semantic_search(sample_rows, keyword_embeddings) -> None:
    tools = create_all_search_tools(InMemoryInventory(sample_rows, embeddings=keyword_embeddings))
    agent = PolicySearchAgent(tools[Domain.DINING])

    response = await agent.ainvoke({"messages": [HumanMessage(content="ristorante a Roma")]})
    result = await DomainAgent(Domain.DINING, agent, turn_budget=3).run("ristorante a Roma")

    assert [call["name"] for call in _tool_calls(response["messages"])] == [
        "search_dining",
        "dining_semantic_search",
    ]
    # both searches return the same two restaurants
    assert [record.source_id for record in result.records] == ["r-2", "r-1"]


async def test_failed_semantic_fallback_keeps_filtered_results(sample_rows) -> None:
    agent = build_policy_agents(create_all_search_tools(InMemoryInventory(sample_rows)))[Domain.DINING]

    result = await agent.run("ristorante a Roma")

    assert result.success is True
    assert len(result.records) == 2


async def test_location_is_taken_from_earlier_turns(sample_rows) -> None:
    tools = create_all_search_tools(InMemoryInventory(sample_rows))
    agent = PolicySearchAgent(tools[Domain.DINING])
    prompt = "Conversation context: user: cerco un hotel a Milano\n\nCurrent query: e un ristorante tipico?"

    response = await agent.ainvoke({"messages": [HumanMessage(content=prompt)]})

    first = _tool_calls(response["messages"])[0]
    assert first["args"] == {"query": "e un ristorante tipico?", "location": "milano"}


async def test_assistant_turns_do_not_supply_the_location(sample_rows) -> None:
    tools = create_all_search_tools(InMemoryInventory(sample_rows))
    agent = PolicySearchAgent(tools[Domain.DINING])
    prompt = (
        "Conversation context: user: cerco un hotel a Milano\n"
        "assistant: Ecco 3 hotel a Roma\n\n"
        "Current query: e un ristorante tipico?"
    )

    response = await agent.ainvoke({"messages": [HumanMessage(content=prompt)]})

    first = _tool_calls(response["messages"])[0]
    assert first["args"] == {"query": "e un ristorante tipico?", "location": "milano"}


async def test_transport_searches_do_not_filter_by_city(sample_rows) -> None:
    agent = build_policy_agents(create_all_search_tools(InMemoryInventory(sample_rows)))[Domain.TRANSPORT]

    result = await agent.run("transfer dall'aeroporto a Roma")

    assert result.success is True
    assert {record.source_id for record in result.records} == {"s-1", "s-2"}


async def test_policy_agents_use_the_default_turn_budgets(sample_rows) -> None:
    agents = build_policy_agents(create_all_search_tools(InMemoryInventory(sample_rows)))

    assert {domain: agent.turn_budget for domain, agent in agents.items()} == {
        Domain.LODGING: 3,
        Domain.DINING: 3,
        Domain.ACTIVITY: 6,
        Domain.TRANSPORT: 6,
    }
