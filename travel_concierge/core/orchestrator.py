"""Entry point that answers one user query across the domain agents.

``Orchestrator.orchestrate`` analyses the query, dispatches the selected
domains, aggregates their results and reports progress along the way. The
whole call runs under a single timeout; only an empty query is raised to the
caller, every other failure is returned as a failed ``OrchestratorResult``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional, Sequence, Union

from travel_concierge.core.aggregator import Aggregator
from travel_concierge.core.analyzer import QueryAnalyzer
from travel_concierge.core.dispatcher import Dispatcher
from travel_concierge.core.errors import EmptyQueryError, OrchestrationTimeout
from travel_concierge.core.events import ProgressListener, ProgressReporter
from travel_concierge.core.schemas import (
    ConversationContext,
    ExecutionSummary,
    Message,
    OrchestratorError,
    OrchestratorResult,
    QueryAnalysis,
)

logger = logging.getLogger(__name__)

HistoryItem = Union[Message, Mapping[str, Any]]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _failed_result(
    kind: str,
    message: str,
    started: float,
    analysis: Optional[QueryAnalysis] = None,
) -> OrchestratorResult:
    return OrchestratorResult(
        success=False,
        message=message,
        execution_summary=ExecutionSummary(
            total_execution_time_ms=_elapsed_ms(started),
            analysis_confidence=analysis.max_confidence if analysis else 0.0,
        ),
        analysis=analysis,
        error=OrchestratorError(kind=kind, message=message),
    )


class Orchestrator:
    def __init__(
        self,
        analyzer: QueryAnalyzer,
        dispatcher: Dispatcher,
        aggregator: Aggregator,
        *,
        timeout_s: float = 60.0,
        history_window: int = 3,
    ) -> None:
        self.analyzer = analyzer
        self.dispatcher = dispatcher
        self.aggregator = aggregator
        self.timeout_s = timeout_s
        self.history_window = history_window

    def build_context(self, query: str, history: Sequence[HistoryItem] = ()) -> ConversationContext:
        messages = tuple(
            item if isinstance(item, Message) else Message.model_validate(item) for item in history
        )
        return ConversationContext(query=query, history=messages, history_window=self.history_window)

    async def orchestrate(
        self,
        query: str,
        history: Sequence[HistoryItem] = (),
        listener: Optional[ProgressListener] = None,
    ) -> OrchestratorResult:
        """Answer ``query`` given the prior conversation ``history``.

        Raises:
            EmptyQueryError: If the query is empty or whitespace only.
        """

        if not query or not query.strip():
            raise EmptyQueryError("Query must not be empty")

        reporter = ProgressReporter(listener)
        started = time.perf_counter()
        context = self.build_context(query.strip(), history)
        logger.info(f"Orchestrating query: {context.query!r} ({len(context.history)} history messages)")

        try:
            result = await asyncio.wait_for(self._run(context, reporter, started), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            failure = OrchestrationTimeout(f"Search timed out after {self.timeout_s:g} seconds")
            logger.error(str(failure))
            await reporter.error(str(failure))
            result = _failed_result("timeout", str(failure), started)
        except Exception as exc:
            logger.error(f"Unexpected orchestration error: {exc}", exc_info=True)
            await reporter.error(str(exc))
            result = _failed_result("internal", f"Search failed: {exc}", started)

        await reporter.end()
        return result

    async def _run(
        self, context: ConversationContext, reporter: ProgressReporter, started: float
    ) -> OrchestratorResult:
        await reporter.analyzing()
        try:
            analysis = self.analyzer.analyze(context.query, context)
        except Exception as exc:
            logger.error(f"Query analysis failed: {exc}", exc_info=True)
            await reporter.error(f"Could not understand the request: {exc}")
            return _failed_result("analysis", f"Could not understand the request: {exc}", started)

        logger.info(
            f"Analysis: domains={[domain.value for domain in analysis.detected_domains]} "
            f"general={analysis.is_general} terms={analysis.search_terms.model_dump(exclude_none=True)}"
        )

        outcome = await self.dispatcher.dispatch(context, analysis, reporter)

        await reporter.finalizing()
        result = await self.aggregator.aggregate(context, analysis, outcome, _elapsed_ms(started))
        await reporter.complete(result.message, result.records)
        return result
