from typing import Dict, List, Optional, Type

from pydantic import BaseModel, Field

from travel_concierge.core.schemas import Domain


class FilteredSearchInput(BaseModel):
    """Fields shared by every filtered search."""

    query: str = Field(description="Natural language search query")
    limit: int = Field(default=10, ge=1, le=50, description="Maximum results to return")


class LodgingSearchInput(FilteredSearchInput):
    """Filtered search over hotels and other accommodation."""

    location: Optional[str] = Field(default=None, description="City or area to search in")
    star_rating: Optional[int] = Field(default=None, ge=1, le=5, description="Minimum star rating (1-5)")
    price_range: Optional[int] = Field(
        default=None, ge=1, le=5, description="Maximum price range (1-5, budget to luxury)"
    )
    amenities: Optional[List[str]] = Field(default=None, description="Amenities that must be offered")


class DiningSearchInput(FilteredSearchInput):
    """Filtered search over restaurants."""

    location: Optional[str] = Field(default=None, description="City or area to search in")
    cuisine_type: Optional[str] = Field(default=None, description="Specific cuisine type")
    price_range: Optional[int] = Field(default=None, ge=1, le=4, description="Maximum price range (1-4)")
    michelin_stars: Optional[int] = Field(default=None, ge=0, le=3, description="Minimum Michelin stars")
    dietary_options: Optional[List[str]] = Field(default=None, description="Dietary requirements")


class ActivitySearchInput(FilteredSearchInput):
    """Filtered search over tours and experiences."""

    location: Optional[str] = Field(default=None, description="City or area for the activity")
    tour_type: Optional[str] = Field(default=None, description="Tour type, e.g. Cultural, Gastronomic")
    difficulty_level: Optional[int] = Field(default=None, ge=1, le=5, description="Maximum difficulty (1-5)")
    duration: Optional[str] = Field(default=None, description="Duration preference (hours or days)")
    max_participants: Optional[int] = Field(default=None, ge=1, description="Group size to accommodate")


class TransportSearchInput(FilteredSearchInput):
    """Filtered search over shuttles and transfers."""

    departure_location: Optional[str] = Field(default=None, description="Departure point")
    arrival_location: Optional[str] = Field(default=None, description="Destination")
    capacity: Optional[int] = Field(default=None, ge=1, description="Minimum seats needed")
    service_type: Optional[str] = Field(
        default=None, description="Service type, e.g. Airport Transfer, City Shuttle"
    )


class SemanticSearchInput(BaseModel):
    """Free-text similarity search against the domain embedding index."""

    query: str = Field(description="Natural language query for semantic search")
    limit: int = Field(default=8, ge=1, le=50, description="Maximum results")
    threshold: float = Field(default=0.3, ge=0, le=1, description="Similarity threshold")


FILTERED_INPUTS: Dict[Domain, Type[FilteredSearchInput]] = {
    Domain.LODGING: LodgingSearchInput,
    Domain.DINING: DiningSearchInput,
    Domain.ACTIVITY: ActivitySearchInput,
    Domain.TRANSPORT: TransportSearchInput,
}
