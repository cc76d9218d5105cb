from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.tools import StructuredTool

from travel_concierge.core.cache import TTLCache, create_cache_key
from travel_concierge.core.schemas import Domain, SearchResponse
from travel_concierge.services.inventory.base import InventoryBackend
from travel_concierge.services.inventory.schemas import FILTERED_INPUTS, SemanticSearchInput

logger = logging.getLogger(__name__)

_FILTERED_DESCRIPTIONS = {
    Domain.LODGING: "Search hotels with filters for location, star rating, price range and amenities.",
    Domain.DINING: "Search restaurants with filters for location, cuisine, price range, Michelin stars and dietary needs.",
    Domain.ACTIVITY: "Search tours and experiences with filters for location, tour type, difficulty, duration and group size.",
    Domain.TRANSPORT: "Search shuttles and transfers with filters for departure, arrival, capacity and service type.",
}


@dataclass(slots=True)
class DomainTools:
    """The exact tool set one domain agent is allowed to call."""

    domain: Domain
    filtered: StructuredTool
    semantic: StructuredTool

    def as_list(self) -> List[StructuredTool]:
        return [self.filtered, self.semantic]


def _render(response: SearchResponse) -> Tuple[str, Dict[str, Any]]:
    payload = response.model_dump(mode="json")
    return json.dumps(payload, default=str), payload


def _retrieval_key(domain: Domain, kind: str, params: Dict[str, Any]) -> str:
    return create_cache_key(domain.value, kind, json.dumps(params, sort_keys=True, default=str))


def create_domain_search_tools(
    domain: Domain,
    backend: InventoryBackend,
    *,
    cache: Optional[TTLCache] = None,
) -> DomainTools:
    """Expose the backend's two query forms for ``domain`` as LangChain tools.

    Both tools answer with a JSON ``SearchResponse`` as content and the same
    payload as the tool artifact. Only successful responses are cached.
    """

    input_model = FILTERED_INPUTS[domain]

    async def _cached(kind: str, params: Dict[str, Any], run) -> SearchResponse:
        key = _retrieval_key(domain, kind, params)
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                logger.debug(f"Retrieval cache hit: {key}")
                return cached
        response = await run()
        if cache is not None and response.success:
            cache.set(key, response)
        return response

    async def _filtered(**kwargs: Any) -> Tuple[str, Dict[str, Any]]:
        params = input_model(**kwargs)
        logger.info(f"[{domain.value.upper()}_SEARCH] Called with: {params.model_dump(exclude_none=True)}")
        response = await _cached(
            "filtered",
            params.model_dump(exclude_none=True),
            lambda: backend.search_filtered(domain, params),
        )
        return _render(response)

    async def _semantic(**kwargs: Any) -> Tuple[str, Dict[str, Any]]:
        params = SemanticSearchInput(**kwargs)
        logger.info(f"[{domain.value.upper()}_SEMANTIC_SEARCH] Called with: {params.model_dump()}")
        response = await _cached(
            "semantic",
            params.model_dump(),
            lambda: backend.search_semantic(domain, params),
        )
        return _render(response)

    filtered = StructuredTool.from_function(
        coroutine=_filtered,
        name=domain.filtered_tool,
        description=_FILTERED_DESCRIPTIONS[domain],
        args_schema=input_model,
        response_format="content_and_artifact",
    )
    semantic = StructuredTool.from_function(
        coroutine=_semantic,
        name=domain.semantic_tool,
        description=f"Semantic search for {domain.label.lower()} using vector embeddings.",
        args_schema=SemanticSearchInput,
        response_format="content_and_artifact",
    )
    return DomainTools(domain=domain, filtered=filtered, semantic=semantic)


def create_all_search_tools(
    backend: InventoryBackend, *, cache: Optional[TTLCache] = None
) -> Dict[Domain, DomainTools]:
    return {domain: create_domain_search_tools(domain, backend, cache=cache) for domain in Domain}
