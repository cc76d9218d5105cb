"""In-process inventory backend.

Holds raw store rows per domain and answers both query forms locally. Used
for headless runs, demos and tests; the filters mirror the ones the hosted
inventory service applies. Semantic queries run against one LangChain
vector store per domain, indexed on first use.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore

from travel_concierge.core.errors import BackendFailure
from travel_concierge.core.schemas import Domain
from travel_concierge.services.inventory.base import InventoryBackend, Rows
from travel_concierge.services.inventory.schemas import (
    ActivitySearchInput,
    DiningSearchInput,
    FilteredSearchInput,
    LodgingSearchInput,
    SemanticSearchInput,
    TransportSearchInput,
)

logger = logging.getLogger(__name__)

RowFilter = Callable[[Dict[str, Any], Any], bool]


def _clean(value: str) -> str:
    return value.replace(",", "").replace(";", "").strip().lower()


def _text_matches(row: Mapping[str, Any], fields: Iterable[str], needle: Optional[str]) -> bool:
    if not needle:
        return True
    needle = _clean(needle)
    return any(needle in str(row.get(field) or "").lower() for field in fields)


def _list_overlaps(row: Mapping[str, Any], field: str, wanted: Optional[Sequence[str]]) -> bool:
    if not wanted:
        return True
    offered = [str(item).lower() for item in row.get(field) or []]
    return any(want.lower() in item for want in wanted for item in offered)


def _number(row: Mapping[str, Any], field: str) -> Optional[float]:
    value = row.get(field)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _at_least(row: Mapping[str, Any], field: str, bound: Optional[float]) -> bool:
    if bound is None:
        return True
    value = _number(row, field)
    return value is not None and value >= bound


def _at_most(row: Mapping[str, Any], field: str, bound: Optional[float]) -> bool:
    if bound is None:
        return True
    value = _number(row, field)
    return value is not None and value <= bound


_LOCATION_FIELDS = ("city", "location", "address")


def _lodging_filter(row: Dict[str, Any], params: LodgingSearchInput) -> bool:
    return (
        _text_matches(row, _LOCATION_FIELDS, params.location)
        and _at_least(row, "star_rating", params.star_rating)
        and _at_most(row, "price_range", params.price_range)
        and _list_overlaps(row, "amenities", params.amenities)
    )


def _dining_filter(row: Dict[str, Any], params: DiningSearchInput) -> bool:
    return (
        _text_matches(row, _LOCATION_FIELDS, params.location)
        and _text_matches(row, ("cuisine_type",), params.cuisine_type)
        and _at_most(row, "price_range", params.price_range)
        and _at_least(row, "michelin_stars", params.michelin_stars)
        and _list_overlaps(row, "dietary_options", params.dietary_options)
    )


def _activity_filter(row: Dict[str, Any], params: ActivitySearchInput) -> bool:
    return (
        _text_matches(row, _LOCATION_FIELDS, params.location)
        and _text_matches(row, ("tour_type",), params.tour_type)
        and _at_most(row, "difficulty_level", params.difficulty_level)
        and _at_least(row, "max_participants", params.max_participants)
        and _text_matches(row, ("duration",), params.duration)
    )


def _transport_filter(row: Dict[str, Any], params: TransportSearchInput) -> bool:
    return (
        _text_matches(row, ("departure_location",), params.departure_location)
        and _text_matches(row, ("arrival_location",), params.arrival_location)
        and _at_least(row, "capacity", params.capacity)
        and _text_matches(row, ("service_type",), params.service_type)
    )


ROW_FILTERS: Dict[Domain, RowFilter] = {
    Domain.LODGING: _lodging_filter,
    Domain.DINING: _dining_filter,
    Domain.ACTIVITY: _activity_filter,
    Domain.TRANSPORT: _transport_filter,
}


def _ranking_key(row: Mapping[str, Any]) -> tuple:
    rating = _number(row, "rating")
    if rating is None:
        rating = _number(row, "star_rating") or 0.0
    return (bool(row.get("is_featured")), rating, _number(row, "booking_count") or 0.0)


def _document_text(row: Mapping[str, Any]) -> str:
    parts: List[str] = [str(row.get("name") or ""), str(row.get("description") or "")]
    for field in ("city", "location", "cuisine_type", "tour_type", "service_type"):
        if row.get(field):
            parts.append(str(row[field]))
    for field in ("amenities", "menu_highlights", "includes", "features"):
        values = row.get(field)
        if isinstance(values, list):
            parts.extend(str(value) for value in values)
    return " ".join(part for part in parts if part)

class InMemoryInventory(InventoryBackend):
    """Answer filtered and semantic searches from rows held in memory."""

    def __init__(
        self,
        rows: Mapping[Domain, Sequence[Dict[str, Any]]],
        *,
        embeddings: Optional[Embeddings] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._rows: Dict[Domain, List[Dict[str, Any]]] = {
            domain: [dict(row) for row in rows.get(domain, [])] for domain in Domain
        }
        self._embeddings = embeddings
        self._stores: Dict[Domain, InMemoryVectorStore] = {}

    def _active(self, domain: Domain) -> List[Dict[str, Any]]:
        return [row for row in self._rows[domain] if row.get("is_active", True)]

    async def filtered_search(self, domain: Domain, params: FilteredSearchInput) -> Rows:
        row_filter = ROW_FILTERS[domain]
        matches = [row for row in self._active(domain) if row_filter(row, params)]
        matches.sort(key=_ranking_key, reverse=True)
        logger.debug(f"[{domain.value.upper()}_SEARCH] {len(matches)} rows matched {params}")
        return matches[: params.limit]

    async def _vector_store(self, domain: Domain) -> InMemoryVectorStore:
        """Index the domain's active rows once; the row travels in the metadata."""

        if domain not in self._stores:
            store = InMemoryVectorStore(embedding=self._embeddings)
            rows = self._active(domain)
            await store.aadd_documents(
                [Document(page_content=_document_text(row), metadata={"row": row}) for row in rows]
            )
            logger.info(f"Indexed {len(rows)} {domain.value} rows for semantic search")
            self._stores[domain] = store
        return self._stores[domain]

    async def semantic_search(self, domain: Domain, params: SemanticSearchInput) -> Rows:
        if self._embeddings is None:
            raise BackendFailure("semantic search is not configured", domain=domain.value)
        if not self._active(domain):
            return []
        store = await self._vector_store(domain)
        hits = await store.asimilarity_search_with_score(f"{domain.value} {params.query}", k=params.limit)
        return [
            {**document.metadata["row"], "similarity": round(score, 4)}
            for document, score in hits
            if score >= params.threshold
        ]
