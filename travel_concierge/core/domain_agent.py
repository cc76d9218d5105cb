"""Domain agents: one bounded search conversation per inventory domain."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langchain_core.tools import BaseTool

from travel_concierge.core.analyzer import QueryAnalyzer
from travel_concierge.core.extractor import ResultExtractor
from travel_concierge.core.schemas import CONTEXT_MARKER, CURRENT_QUERY_MARKER, AgentResult, Domain
from travel_concierge.services.inventory.tools import DomainTools

logger = logging.getLogger(__name__)

MIN_FILTERED_RESULTS = 3


class AgentRunnable(Protocol):
    async def ainvoke(self, input: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> Any:
        ...


def _final_text(messages: List[BaseMessage]) -> str:
    for message in reversed(messages):
        if isinstance(message, AIMessage) and not message.tool_calls:
            content = message.content
            if isinstance(content, str):
                return content.strip()
            if isinstance(content, list):
                chunks = [
                    chunk.get("text", "") if isinstance(chunk, dict) else str(chunk)
                    for chunk in content
                ]
                return "\n".join(chunk for chunk in chunks if chunk).strip()
    return ""


def _user_turns(history: str) -> List[str]:
    """Contents of the `user:` lines in a rendered conversation context."""

    turns: List[str] = []
    for line in history.replace(CONTEXT_MARKER, "", 1).splitlines():
        role, sep, content = line.strip().partition(":")
        if sep and role == "user":
            turns.append(content.strip())
    return turns


class DomainAgent:
    """Run one domain's agent and turn its trace into an ``AgentResult``.

    Every failure, including an exhausted turn budget, is reported on the
    result; ``run`` never raises.
    """

    def __init__(
        self,
        domain: Domain,
        runnable: AgentRunnable,
        *,
        turn_budget: int,
        extractor: Optional[ResultExtractor] = None,
    ) -> None:
        self.domain = domain
        self.runnable = runnable
        self.turn_budget = turn_budget
        self.extractor = extractor or ResultExtractor()

    @property
    def recursion_limit(self) -> int:
        # one model step plus one tool step per turn, plus the final answer
        return 2 * self.turn_budget + 1

    async def run(self, prompt: str) -> AgentResult:
        started = time.perf_counter()
        label = self.domain.label
        agent_input = {"messages": [HumanMessage(content=prompt.strip(), name=self.domain.value)]}
        logger.debug(f"{self.domain.value} agent input: {agent_input}")

        try:
            response = await self.runnable.ainvoke(
                agent_input, config={"recursion_limit": self.recursion_limit}
            )
            messages = response.get("messages", []) if isinstance(response, Mapping) else []
            report = self.extractor.collect(self.domain, messages)
        except Exception as exc:
            logger.error(f"Error invoking {self.domain.value} agent: {exc}")
            return AgentResult(
                domain=self.domain,
                success=False,
                message=f"{label} search failed",
                execution_time_ms=(time.perf_counter() - started) * 1000,
                error=str(exc),
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        if report.backend_failed:
            error = "; ".join(report.failed_calls)
            logger.error(f"{self.domain.value} agent: every search call failed: {error}")
            return AgentResult(
                domain=self.domain,
                success=False,
                message=f"{label} search failed",
                execution_time_ms=elapsed_ms,
                error=error,
            )

        message = _final_text(messages) or f"Found {len(report.records)} {label.lower()} options"
        logger.info(
            f"{self.domain.value} agent finished in {elapsed_ms:.0f} ms with {len(report.records)} records"
        )
        return AgentResult(
            domain=self.domain,
            success=True,
            message=message,
            records=report.records,
            execution_time_ms=elapsed_ms,
        )


class PolicySearchAgent:
    """Apply the search policy without a language model.

    Calls the filtered tool with whatever the analyzer can read from the
    request, falls back to one semantic call when fewer than
    ``MIN_FILTERED_RESULTS`` rows come back, and records both calls as the
    same AI/tool message pairs a ReAct agent would produce.
    """

    def __init__(self, tools: DomainTools, *, analyzer: Optional[QueryAnalyzer] = None) -> None:
        self.tools = tools
        self.analyzer = analyzer or QueryAnalyzer()

    @property
    def domain(self) -> Domain:
        return self.tools.domain

    def _filtered_args(self, query: str, history: str) -> Dict[str, Any]:
        terms = self.analyzer.extract_search_terms(query.lower(), _user_turns(history))
        args: Dict[str, Any] = {"query": query}
        # transfer rows name airports and stations rather than cities
        if terms.location and self.domain is not Domain.TRANSPORT:
            args["location"] = terms.location
        return args

    async def _call(self, tool: BaseTool, args: Dict[str, Any], trace: List[BaseMessage]) -> int:
        call_id = f"call_{uuid4().hex[:12]}"
        trace.append(AIMessage(content="", tool_calls=[{"name": tool.name, "args": args, "id": call_id}]))
        message = await tool.ainvoke({"name": tool.name, "args": args, "id": call_id, "type": "tool_call"})
        trace.append(message)
        artifact = message.artifact if isinstance(message, ToolMessage) else None
        if not isinstance(artifact, Mapping) or not artifact.get("success"):
            return 0
        return len(artifact.get("data") or [])

    async def ainvoke(self, input: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        messages: List[BaseMessage] = list(input.get("messages", []))
        prompt = str(messages[-1].content) if messages else ""
        history, _, query = prompt.rpartition(CURRENT_QUERY_MARKER)
        query = query.strip()

        trace = list(messages)
        found = await self._call(self.tools.filtered, self._filtered_args(query, history), trace)
        if found < MIN_FILTERED_RESULTS:
            found += await self._call(
                self.tools.semantic,
                {"query": query or self.domain.label},
                trace,
            )
        trace.append(AIMessage(content=f"Found {found} {self.domain.label.lower()} results."))
        return {"messages": trace}
