from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from langchain_core.embeddings import Embeddings

from travel_concierge.core.config import OrchestratorSettings
from travel_concierge.core.errors import BackendFailure, RateLimitedError
from travel_concierge.core.schemas import Domain
from travel_concierge.services.inventory.base import InventoryBackend, Rows
from travel_concierge.services.inventory.schemas import FilteredSearchInput, SemanticSearchInput


class HttpInventoryClient(InventoryBackend):
    """Thin async wrapper around the hosted inventory search service."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        embeddings: Optional[Embeddings] = None,
        timeout_s: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        headers = {"accept": "application/json"}
        if api_key:
            headers["authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_s, connect=10.0),
            transport=transport,
        )
        self._embeddings = embeddings

    async def aclose(self) -> None:
        """Close the underlying HTTPX client."""

        await self._client.aclose()

    async def __aenter__(self) -> "HttpInventoryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.aclose()

    async def _apost(self, domain: Domain, path: str, payload: Dict[str, Any]) -> Rows:
        """POST a search payload and return the ``data`` rows of the reply."""

        response = await self._client.post(path, json=payload)
        if response.status_code == 429:
            raise RateLimitedError(
                f"HTTP 429 from inventory service: {response.text.strip() or 'rate limited'}",
                domain=domain.value,
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise BackendFailure(
                f"HTTP {response.status_code} from inventory service", domain=domain.value
            ) from exc
        body = response.json()
        rows = body.get("data") if isinstance(body, dict) else body
        if not isinstance(rows, list):
            raise BackendFailure("Inventory service returned no data list", domain=domain.value)
        return [row for row in rows if isinstance(row, dict)]

    async def filtered_search(self, domain: Domain, params: FilteredSearchInput) -> Rows:
        return await self._apost(
            domain, f"/search/{domain.value}", params.model_dump(exclude_none=True)
        )

    async def semantic_search(self, domain: Domain, params: SemanticSearchInput) -> Rows:
        payload: Dict[str, Any] = params.model_dump()
        if self._embeddings is not None:
            payload["embedding"] = await self._embeddings.aembed_query(f"{domain.value} {params.query}")
        return await self._apost(domain, f"/search/{domain.value}/semantic", payload)


def create_inventory_client(
    settings: OrchestratorSettings, *, embeddings: Optional[Embeddings] = None
) -> HttpInventoryClient:
    """Instantiate the inventory client from project configuration."""

    return HttpInventoryClient(
        settings.ensure("inventory_base_url"),
        api_key=settings.inventory_api_key,
        embeddings=embeddings,
        retry_attempts=settings.search_retry_attempts,
        retry_backoff_s=settings.search_retry_backoff_s,
    )
