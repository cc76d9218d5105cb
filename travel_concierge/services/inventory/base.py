"""Backend contract for the domain search capability.

Backends implement the two raw query forms. The public ``search_filtered`` and
``search_semantic`` wrappers add fixed-backoff retries for rate limiting and
fold every failure into a ``SearchResponse`` so nothing raises past them.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from travel_concierge.core.errors import RateLimitedError
from travel_concierge.core.schemas import Domain, SearchResponse
from travel_concierge.services.inventory.schemas import FilteredSearchInput, SemanticSearchInput

logger = logging.getLogger(__name__)

Rows = List[Dict[str, Any]]


class InventoryBackend(ABC):
    """Query-and-filter contract for the store behind each domain."""

    def __init__(
        self,
        *,
        retry_attempts: int = 3,
        retry_backoff_s: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_s = retry_backoff_s
        self._sleep = sleep

    @abstractmethod
    async def filtered_search(self, domain: Domain, params: FilteredSearchInput) -> Rows:
        """Structured-parameter query against the domain store."""

    @abstractmethod
    async def semantic_search(self, domain: Domain, params: SemanticSearchInput) -> Rows:
        """Free-text similarity query against the domain embedding index."""

    async def aclose(self) -> None:
        """Release any held connections."""

    async def _with_retries(self, domain: Domain, operation: Callable[[], Awaitable[Rows]]) -> Rows:
        def _log_retry(state: RetryCallState) -> None:
            logger.warning(
                f"{domain.value} search rate limited (attempt {state.attempt_number}/{self.retry_attempts}): "
                f"{state.outcome.exception()}; retrying in {self.retry_backoff_s}s"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_backoff_s),
            retry=retry_if_exception_type(RateLimitedError),
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(operation)

    async def search_filtered(self, domain: Domain, params: FilteredSearchInput) -> SearchResponse:
        context = params.model_dump(exclude_none=True)
        try:
            rows = await self._with_retries(domain, lambda: self.filtered_search(domain, params))
        except Exception as exc:
            logger.error(f"{domain.value} filtered search failed: {exc}")
            return SearchResponse(
                success=False,
                message=f"{domain.label} search failed",
                error=str(exc) or type(exc).__name__,
                search_context=context,
            )
        return SearchResponse(
            success=True,
            data=rows,
            message=f"Found {len(rows)} {domain.value} results matching your criteria",
            search_context=context,
        )

    async def search_semantic(self, domain: Domain, params: SemanticSearchInput) -> SearchResponse:
        context = params.model_dump()
        try:
            rows = await self._with_retries(domain, lambda: self.semantic_search(domain, params))
        except Exception as exc:
            logger.error(f"{domain.value} semantic search failed: {exc}")
            return SearchResponse(
                success=False,
                message=f"{domain.label} semantic search failed",
                error=str(exc) or type(exc).__name__,
                search_context=context,
            )
        return SearchResponse(
            success=True,
            data=rows,
            message=f"Found {len(rows)} {domain.value} results through semantic search",
            search_context=context,
        )
