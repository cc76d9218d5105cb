"""Tests for routing selected domains to their agents."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from travel_concierge.core.dispatcher import Dispatcher, choose_strategy
from travel_concierge.core.events import ProgressEvent, ProgressReporter
from travel_concierge.core.schemas import (
    AgentResult,
    CanonicalRecord,
    ConversationContext,
    Domain,
    Message,
    QueryAnalysis,
)


def make_records(domain: Domain, count: int) -> List[CanonicalRecord]:
    return [
        CanonicalRecord(id=f"{domain.value}:{index}", source_id=str(index), name=f"{domain.label} {index}", domain=domain)
        for index in range(count)
    ]


class ConcurrencyGauge:
    def __init__(self) -> None:
        self.current = 0
        self.peak = 0


class StubAgent:
    """Records its prompts and answers with a canned result."""

    def __init__(
        self,
        domain: Domain,
        records: int = 0,
        *,
        success: bool = True,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        gauge: Optional[ConcurrencyGauge] = None,
    ) -> None:
        self.domain = domain
        self.records = records
        self.success = success
        self.delay = delay
        self.error = error
        self.gauge = gauge
        self.prompts: List[str] = []

    async def run(self, prompt: str) -> AgentResult:
        self.prompts.append(prompt)
        if self.gauge is not None:
            self.gauge.current += 1
            self.gauge.peak = max(self.gauge.peak, self.gauge.current)
        try:
            await asyncio.sleep(self.delay)
        finally:
            if self.gauge is not None:
                self.gauge.current -= 1
        if self.error is not None:
            raise self.error
        return AgentResult(
            domain=self.domain,
            success=self.success,
            records=make_records(self.domain, self.records) if self.success else [],
            error=None if self.success else "backend down",
        )


def make_analysis(domains: Sequence[Domain], *, is_general: bool = False) -> QueryAnalysis:
    return QueryAnalysis(
        detected_domains=list(domains),
        confidence={domain: 0.5 if domain in domains else 0.0 for domain in Domain},
        is_general=is_general,
    )


def make_context(query: str = "hotel a Roma") -> ConversationContext:
    return ConversationContext(query=query)


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "domains, is_general, expected",
    [
        ([Domain.LODGING], False, "sequential"),
        ([Domain.LODGING, Domain.DINING], False, "sequential"),
        ([Domain.LODGING, Domain.DINING], True, "parallel"),
        ([Domain.LODGING, Domain.DINING, Domain.ACTIVITY], False, "parallel"),
    ],
)
def test_strategy_choice(domains: List[Domain], is_general: bool, expected: str) -> None:
    assert choose_strategy(make_analysis(domains, is_general=is_general)) == expected


# ---------------------------------------------------------------------------
# Sequential
# ---------------------------------------------------------------------------


async def test_strong_first_domain_stops_the_sequence() -> None:
    lodging, dining = StubAgent(Domain.LODGING, 3), StubAgent(Domain.DINING, 2)
    dispatcher = Dispatcher({Domain.LODGING: lodging, Domain.DINING: dining})

    outcome = await dispatcher.dispatch(make_context(), make_analysis([Domain.LODGING, Domain.DINING]))

    assert outcome.strategy == "sequential"
    assert outcome.terminated_early is True
    assert [result.domain for result in outcome.results] == [Domain.LODGING]
    assert outcome.dispatched == [Domain.LODGING, Domain.DINING]
    assert dining.prompts == []


async def test_weak_first_domain_continues_the_sequence() -> None:
    lodging, dining = StubAgent(Domain.LODGING, 2), StubAgent(Domain.DINING, 5)
    dispatcher = Dispatcher({Domain.LODGING: lodging, Domain.DINING: dining})

    outcome = await dispatcher.dispatch(make_context(), make_analysis([Domain.LODGING, Domain.DINING]))

    assert outcome.terminated_early is False
    assert [result.domain for result in outcome.results] == [Domain.LODGING, Domain.DINING]


async def test_failed_first_domain_never_stops_the_sequence() -> None:
    dispatcher = Dispatcher(
        {
            Domain.DINING: StubAgent(Domain.DINING, 4, success=False),
            Domain.LODGING: StubAgent(Domain.LODGING, 1),
        }
    )

    outcome = await dispatcher.dispatch(make_context(), make_analysis([Domain.DINING, Domain.LODGING]))

    assert len(outcome.results) == 2
    assert outcome.results[0].success is False


async def test_single_domain_is_not_reported_as_early_termination() -> None:
    dispatcher = Dispatcher({Domain.LODGING: StubAgent(Domain.LODGING, 5)})

    outcome = await dispatcher.dispatch(make_context(), make_analysis([Domain.LODGING]))

    assert outcome.terminated_early is False
    assert len(outcome.results[0].records) == 5


async def test_early_termination_threshold_is_configurable() -> None:
    dining = StubAgent(Domain.DINING, 1)
    dispatcher = Dispatcher(
        {Domain.LODGING: StubAgent(Domain.LODGING, 3), Domain.DINING: dining},
        early_termination_min=4,
    )

    await dispatcher.dispatch(make_context(), make_analysis([Domain.LODGING, Domain.DINING]))

    assert len(dining.prompts) == 1


async def test_agents_receive_the_query_with_recent_history() -> None:
    lodging = StubAgent(Domain.LODGING)
    context = ConversationContext(
        query="e per cena?",
        history=(Message(role="user", content="hotel a Roma"),),
    )

    await Dispatcher({Domain.LODGING: lodging}).dispatch(context, make_analysis([Domain.LODGING]))

    assert lodging.prompts == ["Conversation context: user: hotel a Roma\n\nCurrent query: e per cena?"]


async def test_missing_agent_yields_a_failed_result() -> None:
    dispatcher = Dispatcher({Domain.LODGING: StubAgent(Domain.LODGING, 1)})

    outcome = await dispatcher.dispatch(make_context(), make_analysis([Domain.LODGING, Domain.DINING]))

    missing = outcome.results[1]
    assert missing.domain is Domain.DINING
    assert missing.success is False
    assert missing.error == "No agent configured for dining"


# ---------------------------------------------------------------------------
# Parallel
# ---------------------------------------------------------------------------


async def test_parallel_results_keep_dispatch_order() -> None:
    domains = [Domain.ACTIVITY, Domain.LODGING, Domain.DINING]
    agents = {
        Domain.ACTIVITY: StubAgent(Domain.ACTIVITY, 1, delay=0.03),
        Domain.LODGING: StubAgent(Domain.LODGING, 1, delay=0.0),
        Domain.DINING: StubAgent(Domain.DINING, 1, delay=0.01),
    }

    outcome = await Dispatcher(agents).dispatch(make_context(), make_analysis(domains, is_general=True))

    assert outcome.strategy == "parallel"
    assert [result.domain for result in outcome.results] == domains


async def test_parallel_failures_are_isolated() -> None:
    agents = {
        Domain.LODGING: StubAgent(Domain.LODGING, 2),
        Domain.DINING: StubAgent(Domain.DINING, error=RuntimeError("boom")),
        Domain.ACTIVITY: StubAgent(Domain.ACTIVITY, 1),
    }

    outcome = await Dispatcher(agents).dispatch(
        make_context(), make_analysis([Domain.LODGING, Domain.DINING, Domain.ACTIVITY])
    )

    assert [result.success for result in outcome.results] == [True, False, True]
    assert outcome.results[1].error == "boom"
    assert outcome.results[1].message == "Dining search failed"


async def test_parallel_dispatch_respects_the_concurrency_cap() -> None:
    gauge = ConcurrencyGauge()
    agents: Dict[Domain, StubAgent] = {
        domain: StubAgent(domain, 1, delay=0.01, gauge=gauge) for domain in Domain
    }

    outcome = await Dispatcher(agents, max_concurrency=2).dispatch(
        make_context(), make_analysis(Domain.ordered(), is_general=True)
    )

    assert len(outcome.results) == 4
    assert gauge.peak == 2


async def test_parallel_never_terminates_early() -> None:
    agents = {domain: StubAgent(domain, 5) for domain in Domain}

    outcome = await Dispatcher(agents).dispatch(make_context(), make_analysis(Domain.ordered(), is_general=True))

    assert outcome.terminated_early is False
    assert all(agent.prompts for agent in agents.values())


async def test_each_agent_reports_start_and_completion() -> None:
    events: List[ProgressEvent] = []
    agents = {Domain.LODGING: StubAgent(Domain.LODGING, 2), Domain.DINING: StubAgent(Domain.DINING, 1)}

    await Dispatcher(agents).dispatch(
        make_context(),
        make_analysis([Domain.LODGING, Domain.DINING]),
        ProgressReporter(events.append),
    )

    assert [(event.type, event.domain) for event in events] == [
        ("agent_start", Domain.LODGING),
        ("agent_complete", Domain.LODGING),
        ("agent_start", Domain.DINING),
        ("agent_complete", Domain.DINING),
    ]
    assert [event.records_found for event in events if event.type == "agent_complete"] == [2, 1]
