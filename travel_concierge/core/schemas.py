"""Pydantic data models for the travel concierge orchestration core.

These models are the contract between the analyzer, the dispatcher, the domain
agents, the result extractor and the aggregator. Every backend payload is
normalised into ``CanonicalRecord`` before it leaves a domain agent, so the
rest of the pipeline never sees store-specific shapes.

Key model categories:
- Domain / CanonicalRecord: the normalised cross-domain result shape
- Message / ConversationContext: immutable view of the user turn and history
- QueryAnalysis: which domains a query touches and what terms it carries
- AgentResult / OrchestratorResult: per-domain and aggregated outcomes
- SearchResponse: the envelope every search tool returns
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from travel_concierge.core.types import Confidence, Lat, Lng, NonNegMillis, Rating

UNRATED = 0.0
CONTEXT_MARKER = "Conversation context:"
CURRENT_QUERY_MARKER = "Current query:"


class Domain(str, Enum):
    """The four inventory domains, in tie-break order."""

    LODGING = "lodging"
    DINING = "dining"
    ACTIVITY = "activity"
    TRANSPORT = "transport"

    @property
    def label(self) -> str:
        return _DOMAIN_LABELS[self]

    @property
    def filtered_tool(self) -> str:
        return f"search_{self.value}"

    @property
    def semantic_tool(self) -> str:
        return f"{self.value}_semantic_search"

    @property
    def search_tools(self) -> Tuple[str, str]:
        return (self.filtered_tool, self.semantic_tool)

    @classmethod
    def ordered(cls) -> List["Domain"]:
        """Return all domains in declaration order."""

        return list(cls)


_DOMAIN_LABELS = {
    Domain.LODGING: "Lodging",
    Domain.DINING: "Dining",
    Domain.ACTIVITY: "Activities",
    Domain.TRANSPORT: "Transport",
}


class Coordinates(BaseModel):
    lat: Lat
    lng: Lng

    model_config = ConfigDict(frozen=True)


class Location(BaseModel):
    """Free-text location with optional geographic coordinates."""

    text: str = ""
    coordinates: Optional[Coordinates] = None

    model_config = ConfigDict(frozen=True)


class ContactInfo(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CanonicalRecord(BaseModel):
    """A single recommendation normalised from any domain backend.

    Attributes:
        id: Identity used for deduplication, ``"<domain>:<source_id>"``
        source_id: Identifier of the row in its source store
        name: Display name
        domain: Inventory domain the record came from
        description: Free-text description
        location: Where the record is (text and optional coordinates)
        price_range: Ordinal price level or currency amount, as text
        rating: 0-5 rating, ``UNRATED`` when the source had none
        amenities: Ordered highlights (amenities, menu highlights, inclusions)
        images: Image URIs
        contact: Phone, email and website when known
    """

    id: str
    source_id: str
    name: str
    domain: Domain
    description: str = ""
    location: Location = Field(default_factory=Location)
    price_range: Optional[str] = None
    rating: Rating = UNRATED
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    contact: ContactInfo = Field(default_factory=ContactInfo)

    model_config = ConfigDict(frozen=True)


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str

    model_config = ConfigDict(frozen=True)


class ConversationContext(BaseModel):
    """The current query plus the conversation that led to it.

    Built once per ``orchestrate`` call and shared by reference with the
    analyzer and the dispatcher; it is frozen so no stage can rewrite the
    history another stage sees.
    """

    query: str
    history: Tuple[Message, ...] = ()
    history_window: int = Field(default=3, ge=0)

    model_config = ConfigDict(frozen=True)

    def recent_history(self) -> Tuple[Message, ...]:
        if self.history_window == 0:
            return ()
        return self.history[-self.history_window:]

    def recent_user_turns(self) -> List[str]:
        return [message.content for message in self.recent_history() if message.role == "user"]

    def contextual_prompt(self) -> str:
        """Render the query with the trimmed history prepended."""

        recent = self.recent_history()
        if not recent:
            return self.query
        lines = "\n".join(f"{message.role}: {message.content}" for message in recent)
        return f"{CONTEXT_MARKER} {lines}\n\n{CURRENT_QUERY_MARKER} {self.query}"


class SearchTerms(BaseModel):
    location: Optional[str] = None
    budget: Optional[str] = None
    group_size: Optional[str] = None
    occasion: Optional[str] = None


class QueryAnalysis(BaseModel):
    """Which domains a query touches and the contextual terms it carries.

    Attributes:
        detected_domains: Domains to dispatch, highest confidence first
        confidence: Per-domain confidence in [0, 1]
        is_general: Broad request that should fan out in parallel
        search_terms: Location / budget / group size / occasion markers
        has_date_range: A date range or explicit day-month was found
        general_confidence: Confidence of the trip-planning lexicon
        is_trip_planning: The full-trip rule selected all four domains
    """

    detected_domains: List[Domain] = Field(min_length=1)
    confidence: Dict[Domain, Confidence]
    is_general: bool
    search_terms: SearchTerms = Field(default_factory=SearchTerms)
    has_date_range: bool = False
    general_confidence: Confidence = 0.0
    is_trip_planning: bool = False

    @property
    def primary_domain(self) -> Domain:
        return self.detected_domains[0]

    @property
    def max_confidence(self) -> float:
        return max(self.confidence.values(), default=0.0)


class SearchResponse(BaseModel):
    """Envelope returned by every domain search call; never raised past."""

    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    message: str = ""
    error: Optional[str] = None
    search_context: Dict[str, Any] = Field(default_factory=dict)


class AgentResult(BaseModel):
    """Outcome of one domain agent invocation; consumed by the aggregator."""

    domain: Domain
    success: bool
    message: str = ""
    records: List[CanonicalRecord] = Field(default_factory=list)
    execution_time_ms: NonNegMillis = 0.0
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ExecutionSummary(BaseModel):
    total_agents_used: int = 0
    successful_agents: int = 0
    failed_agents: int = 0
    total_execution_time_ms: NonNegMillis = 0.0
    total_records_found: int = 0
    analysis_confidence: Confidence = 0.0
    strategy: Optional[Literal["parallel", "sequential"]] = None
    terminated_early: bool = False


class OrchestratorError(BaseModel):
    kind: Literal["timeout", "analysis", "internal"]
    message: str


class OrchestratorResult(BaseModel):
    """Aggregated answer to one user query. Never persisted by the core."""

    success: bool
    message: str
    records: List[CanonicalRecord] = Field(default_factory=list)
    agent_results: List[AgentResult] = Field(default_factory=list)
    execution_summary: ExecutionSummary = Field(default_factory=ExecutionSummary)
    analysis: Optional[QueryAnalysis] = None
    error: Optional[OrchestratorError] = None


__all__ = [
    "AgentResult",
    "CanonicalRecord",
    "ContactInfo",
    "ConversationContext",
    "Coordinates",
    "Domain",
    "ExecutionSummary",
    "Location",
    "Message",
    "OrchestratorError",
    "OrchestratorResult",
    "QueryAnalysis",
    "SearchResponse",
    "SearchTerms",
    "UNRATED",
]
