"""Merge per-domain agent results into one orchestrator answer."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from travel_concierge.core.cache import TTLCache, create_cache_key, with_cache
from travel_concierge.core.dispatcher import DispatchOutcome
from travel_concierge.core.prompts import summary_prompt
from travel_concierge.core.schemas import (
    AgentResult,
    CanonicalRecord,
    ConversationContext,
    Domain,
    ExecutionSummary,
    OrchestratorResult,
    QueryAnalysis,
)

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = (
    "Sorry, I couldn't find anything matching your request. "
    "Try different search terms or contact our team for personalised help."
)

DOMAIN_ICONS = {
    Domain.LODGING: "🏨",
    Domain.DINING: "🍽️",
    Domain.ACTIVITY: "🗺️",
    Domain.TRANSPORT: "🚐",
}

DomainCounts = Sequence[Tuple[Domain, int]]


def deduplicate(results: Sequence[AgentResult]) -> List[CanonicalRecord]:
    """Union of all records in result order, keeping the first of each id."""

    seen: set[str] = set()
    records: List[CanonicalRecord] = []
    for result in results:
        for record in result.records:
            if record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)
    return records


def producing_counts(results: Sequence[AgentResult]) -> List[Tuple[Domain, int]]:
    return [
        (result.domain, len(result.records))
        for result in results
        if result.success and result.records
    ]


def _options(count: int) -> str:
    return "option" if count == 1 else "options"


class SummaryTemplate:
    """Fixed-wording summary; failed domains never appear in it."""

    def render(self, analysis: QueryAnalysis, counts: DomainCounts) -> str:
        if not counts:
            return NO_RESULTS_MESSAGE

        total = sum(count for _, count in counts)
        if len(counts) == 1 and not analysis.is_general:
            domain = counts[0][0]
            intro = f"Great! I found {total} {domain.label.lower()} {_options(total)} that fit your request:"
        else:
            intro = f"Great news! I found {total} {_options(total)} for your trip:"

        lines = "\n".join(
            f"{DOMAIN_ICONS[domain]} **{domain.label}**: {count} {_options(count)} found"
            for domain, count in counts
        )
        if len(counts) > 1:
            outro = "All options are shown below with full details. Let me know if you want to explore a specific category!"
        else:
            outro = "Full details are in the cards below!"
        return f"{intro}\n\n{lines}\n\n{outro}"


class SummaryWriter:
    """Ask a chat model for the summary, falling back to the template.

    The model only ever sees the user query and the per-domain counts, never
    record contents, so it cannot recommend anything that was not found.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        *,
        cache: Optional[TTLCache] = None,
        template: Optional[SummaryTemplate] = None,
    ) -> None:
        self.llm = llm
        self.cache = cache
        self.template = template or SummaryTemplate()

    async def _generate(self, query: str, counts: DomainCounts) -> str:
        prompt = summary_prompt.format(
            query=query,
            counts="\n".join(f"- {domain.label}: {count}" for domain, count in counts),
        )
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        content = response.content
        if isinstance(content, list):
            content = "\n".join(
                chunk.get("text", "") if isinstance(chunk, dict) else str(chunk) for chunk in content
            )
        text = str(content).strip()
        if not text:
            raise ValueError("Summary model returned an empty message")
        return text

    async def write(self, query: str, analysis: QueryAnalysis, counts: DomainCounts) -> str:
        if not counts:
            return NO_RESULTS_MESSAGE
        try:
            if self.cache is None:
                return await self._generate(query, counts)
            key = create_cache_key(
                "summary", query, *(f"{domain.value}={count}" for domain, count in counts)
            )
            return await with_cache(self.cache, key, lambda: self._generate(query, counts))
        except Exception as exc:
            logger.warning(f"Summary generation failed, using template: {exc}")
            return self.template.render(analysis, counts)


class Aggregator:
    def __init__(
        self,
        *,
        template: Optional[SummaryTemplate] = None,
        writer: Optional[SummaryWriter] = None,
    ) -> None:
        self.template = template or SummaryTemplate()
        self.writer = writer

    async def summarize(self, query: str, analysis: QueryAnalysis, counts: DomainCounts) -> str:
        if self.writer is not None:
            return await self.writer.write(query, analysis, counts)
        return self.template.render(analysis, counts)

    async def aggregate(
        self,
        context: ConversationContext,
        analysis: QueryAnalysis,
        outcome: DispatchOutcome,
        elapsed_ms: float,
    ) -> OrchestratorResult:
        results = outcome.results
        records = deduplicate(results)
        counts = producing_counts(results)
        successful = sum(1 for result in results if result.success)

        message = await self.summarize(context.query, analysis, counts)
        logger.info(
            f"Aggregated {len(records)} records from {successful}/{len(results)} successful agents"
        )
        return OrchestratorResult(
            success=successful > 0,
            message=message,
            records=records,
            agent_results=list(results),
            execution_summary=ExecutionSummary(
                total_agents_used=len(results),
                successful_agents=successful,
                failed_agents=len(results) - successful,
                total_execution_time_ms=max(elapsed_ms, 0.0),
                total_records_found=len(records),
                analysis_confidence=analysis.max_confidence,
                strategy=outcome.strategy,
                terminated_early=outcome.terminated_early,
            ),
            analysis=analysis,
        )
