"""Pytest configuration and shared fixtures for the travel concierge project."""
from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest
from langchain_core.embeddings import Embeddings

# Ensure the project root is on sys.path so that import travel_concierge works under pytest.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from travel_concierge.core.schemas import Domain  # noqa: E402


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class KeywordEmbeddings(Embeddings):
    """Bag-of-words vectors over a tiny vocabulary; deterministic and offline."""

    VOCABULARY = ("spa", "pool", "wifi", "roma", "pasta", "tour", "transfer", "romantic")

    def __init__(self) -> None:
        self.calls: List[str] = []

    def _vector(self, text: str) -> List[float]:
        words = re.findall(r"\w+", text.lower())
        return [float(words.count(term)) for term in self.VOCABULARY]

    def embed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        return self._vector(text)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_query(text) for text in texts]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def keyword_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_rows() -> Dict[Domain, List[Dict[str, Any]]]:
    """Store rows in the shapes the inventory service returns them."""

    return {
        Domain.LODGING: [
            {
                "id": "h-1",
                "name": "Hotel Colosseo",
                "description": "Boutique hotel steps from the Colosseum",
                "city": "Roma",
                "star_rating": 4,
                "price_range": 3,
                "rating": 4.5,
                "amenities": ["wifi", "spa"],
                "gallery_urls": ["https://img.example/h1.jpg"],
                "website": "https://colosseo.example",
                "is_featured": True,
            },
            {
                "id": "h-2",
                "name": "Albergo Trevi",
                "description": "Classic rooms near the fountain",
                "city": "Roma",
                "star_rating": 3,
                "price_range": 2,
                "rating": 4.2,
                "amenities": ["wifi"],
            },
            {
                "id": "h-3",
                "name": "B&B Trastevere",
                "description": "Family-run bed and breakfast",
                "city": "Roma",
                "star_rating": 2,
                "price_range": 1,
                "rating": "4.8",
                "amenities": ["breakfast"],
            },
            {
                "id": "h-4",
                "name": "Hotel Navigli",
                "city": "Milano",
                "star_rating": 4,
                "price_range": 4,
                "rating": 4.0,
            },
            {
                "id": "h-5",
                "name": "Closed Inn",
                "city": "Roma",
                "star_rating": 5,
                "is_active": False,
            },
        ],
        Domain.DINING: [
            {
                "id": "r-1",
                "name": "Trattoria da Enzo",
                "city": "Roma",
                "cuisine_type": "Romana",
                "price_range": 2,
                "rating": 4.6,
                "menu_highlights": ["carbonara", "cacio e pepe"],
                "reservation_url": "https://enzo.example/book",
            },
            {
                "id": "r-2",
                "name": "La Pergola",
                "city": "Roma",
                "cuisine_type": "Mediterranea",
                "price_range": 4,
                "michelin_stars": 3,
                "rating": 4.9,
            },
            {
                "id": "r-3",
                "name": "Osteria Milanese",
                "city": "Milano",
                "cuisine_type": "Lombarda",
                "price_range": 2,
            },
        ],
        Domain.ACTIVITY: [
            {
                "id": "t-1",
                "name": "Colosseum Underground Tour",
                "city": "Roma",
                "tour_type": "Historical",
                "difficulty_level": 2,
                "max_participants": 12,
                "includes": ["guide", "tickets"],
                "rating": 4.7,
            },
            {
                "id": "t-2",
                "name": "Vatican Museums Skip-the-line",
                "city": "Roma",
                "tour_type": "Cultural",
                "difficulty_level": 1,
                "max_participants": 20,
                "rating": 4.4,
            },
        ],
        Domain.TRANSPORT: [
            {
                "id": "s-1",
                "name": "Fiumicino Express Transfer",
                "departure_location": "Fiumicino Airport",
                "arrival_location": "Roma Centro",
                "capacity": 8,
                "service_type": "Airport Transfer",
                "features": ["meet and greet", "luggage"],
                "booking_url": "https://fco.example",
            },
            {
                "id": "s-2",
                "name": "Ciampino Shared Shuttle",
                "departure_location": "Ciampino Airport",
                "arrival_location": "Roma Termini",
                "capacity": 16,
                "service_type": "Shared Shuttle",
            },
        ],
    }
