"""Domain search capability backed by the partner inventory.

Public API:
    - InventoryBackend: abstract query-and-filter contract with retries
    - InMemoryInventory: in-process backend for headless runs and tests
    - HttpInventoryClient / create_inventory_client: hosted inventory service
    - create_domain_search_tools / create_all_search_tools: LangChain tools
    - *SearchInput: Pydantic schemas for tool parameters
"""
from travel_concierge.services.inventory.base import InventoryBackend
from travel_concierge.services.inventory.client import HttpInventoryClient, create_inventory_client
from travel_concierge.services.inventory.memory import InMemoryInventory
from travel_concierge.services.inventory.schemas import (
    ActivitySearchInput,
    DiningSearchInput,
    FilteredSearchInput,
    LodgingSearchInput,
    SemanticSearchInput,
    TransportSearchInput,
)
from travel_concierge.services.inventory.tools import (
    DomainTools,
    create_all_search_tools,
    create_domain_search_tools,
)

__all__ = [
    "ActivitySearchInput",
    "DiningSearchInput",
    "DomainTools",
    "FilteredSearchInput",
    "HttpInventoryClient",
    "InMemoryInventory",
    "InventoryBackend",
    "LodgingSearchInput",
    "SemanticSearchInput",
    "TransportSearchInput",
    "create_all_search_tools",
    "create_domain_search_tools",
    "create_inventory_client",
]
