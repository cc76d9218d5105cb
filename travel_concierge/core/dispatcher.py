"""Route a query's selected domains to their agents.

Broad requests fan out to every selected agent concurrently; narrow ones run
in confidence order so a strong first answer can stop the rest.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Literal, Mapping, Sequence

from travel_concierge.core.domain_agent import DomainAgent
from travel_concierge.core.events import NULL_REPORTER, ProgressReporter
from travel_concierge.core.schemas import AgentResult, ConversationContext, Domain, QueryAnalysis

logger = logging.getLogger(__name__)

Strategy = Literal["parallel", "sequential"]


@dataclass(slots=True)
class DispatchOutcome:
    """Agent results in dispatch order plus how they were obtained."""

    strategy: Strategy
    dispatched: List[Domain]
    results: List[AgentResult] = field(default_factory=list)
    terminated_early: bool = False


def choose_strategy(analysis: QueryAnalysis) -> Strategy:
    if analysis.is_general or len(analysis.detected_domains) > 2:
        return "parallel"
    return "sequential"


class Dispatcher:
    def __init__(
        self,
        agents: Mapping[Domain, DomainAgent],
        *,
        early_termination_min: int = 3,
        max_concurrency: int = 4,
    ) -> None:
        self.agents = dict(agents)
        self.early_termination_min = early_termination_min
        self.max_concurrency = max(1, max_concurrency)

    async def dispatch(
        self,
        context: ConversationContext,
        analysis: QueryAnalysis,
        reporter: ProgressReporter = NULL_REPORTER,
    ) -> DispatchOutcome:
        domains = list(analysis.detected_domains)
        strategy = choose_strategy(analysis)
        prompt = context.contextual_prompt()
        logger.info(f"Dispatching {[domain.value for domain in domains]} ({strategy})")

        if strategy == "parallel":
            return await self._dispatch_parallel(domains, prompt, reporter)
        return await self._dispatch_sequential(domains, prompt, reporter)

    async def _run_agent(self, domain: Domain, prompt: str, reporter: ProgressReporter) -> AgentResult:
        await reporter.agent_start(domain)
        started = time.perf_counter()
        agent = self.agents.get(domain)
        if agent is None:
            logger.error(f"No agent configured for {domain.value}")
            result = AgentResult(
                domain=domain,
                success=False,
                message=f"{domain.label} search unavailable",
                error=f"No agent configured for {domain.value}",
            )
        else:
            try:
                result = await agent.run(prompt)
            except Exception as exc:
                logger.error(f"{domain.value} agent raised: {exc}", exc_info=True)
                result = AgentResult(
                    domain=domain,
                    success=False,
                    message=f"{domain.label} search failed",
                    execution_time_ms=(time.perf_counter() - started) * 1000,
                    error=str(exc),
                )
        await reporter.agent_complete(domain, len(result.records))
        return result

    async def _dispatch_parallel(
        self, domains: Sequence[Domain], prompt: str, reporter: ProgressReporter
    ) -> DispatchOutcome:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(domain: Domain) -> AgentResult:
            async with semaphore:
                return await self._run_agent(domain, prompt, reporter)

        # gather keeps argument order, so results follow dispatch order
        results = await asyncio.gather(*(_bounded(domain) for domain in domains))
        return DispatchOutcome(strategy="parallel", dispatched=list(domains), results=list(results))

    async def _dispatch_sequential(
        self, domains: Sequence[Domain], prompt: str, reporter: ProgressReporter
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(strategy="sequential", dispatched=list(domains))
        for position, domain in enumerate(domains):
            result = await self._run_agent(domain, prompt, reporter)
            outcome.results.append(result)
            remaining = len(domains) - position - 1
            if (
                position == 0
                and remaining
                and result.success
                and len(result.records) >= self.early_termination_min
            ):
                logger.info(
                    f"{domain.value} returned {len(result.records)} records; "
                    f"skipping {remaining} remaining domain(s)"
                )
                outcome.terminated_early = True
                break
        return outcome
