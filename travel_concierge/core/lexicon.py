"""Marker-term tables used by the query analyzer.

The tables are data so they can be tuned or translated without touching the
analyzer: ``load_lexicon`` reads the same structure from a JSON file.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from travel_concierge.core.schemas import Domain

logger = logging.getLogger(__name__)


class Lexicon(BaseModel):
    """Marker terms per domain plus the contextual term lists."""

    domains: Dict[Domain, List[str]]
    general: List[str]
    locations: List[str] = Field(default_factory=list)
    budgets: List[str] = Field(default_factory=list)
    group_sizes: List[str] = Field(default_factory=list)
    occasions: List[str] = Field(default_factory=list)
    months: List[str] = Field(default_factory=list)

    @field_validator("domains")
    @classmethod
    def _all_domains_present(cls, value: Dict[Domain, List[str]]) -> Dict[Domain, List[str]]:
        missing = [domain.value for domain in Domain if not value.get(domain)]
        if missing:
            raise ValueError(f"Lexicon is missing terms for: {', '.join(missing)}")
        return value

    @field_validator(
        "general", "locations", "budgets", "group_sizes", "occasions", "months"
    )
    @classmethod
    def _lowercase(cls, value: List[str]) -> List[str]:
        return [term.lower().strip() for term in value if term.strip()]


DEFAULT_LEXICON = Lexicon(
    domains={
        Domain.LODGING: [
            "hotel", "albergo", "dormire", "notte", "camera", "prenotare",
            "soggiorno", "pernottare", "bed", "accommodation", "suite", "resort",
            "stelle", "lusso", "budget", "economico", "room", "stay", "hostel",
            "b&b",
        ],
        Domain.DINING: [
            "ristorante", "mangiare", "cena", "pranzo", "cucina", "menu",
            "piatto", "tavola", "food", "dining", "restaurant", "trattoria",
            "osteria", "pizzeria", "michelin", "stellato", "gourmet", "locale",
            "tipico", "specialità", "vino", "aperitivo", "dinner", "lunch", "eat",
        ],
        Domain.ACTIVITY: [
            "tour", "visita", "escursione", "gita", "esperienza", "attività",
            "vedere", "tourist", "sightseeing", "walking", "guided", "culturale",
            "storico", "museo", "arte", "architettura", "natura", "avventura",
            "trekking", "hiking", "bike", "museum", "excursion", "activity",
        ],
        Domain.TRANSPORT: [
            "trasporto", "navetta", "transfer", "aeroporto", "stazione",
            "muovere", "shuttle", "transport", "bus", "taxi", "car", "pick up",
            "drop off", "arrivare", "partire", "collegamento", "spostamento",
            "airport", "station",
        ],
    },
    general=[
        "viaggio", "organizza", "pianifica", "programma", "itinerario",
        "vacanza", "trip", "organize", "plan", "vacation", "holiday", "weekend",
        "settimana", "completo", "tutto", "per due", "coppia", "famiglia",
        "gruppo", "giorni", "settimane", "mesi", "itinerary",
    ],
    locations=[
        "roma", "rome", "milano", "milan", "firenze", "florence", "venezia",
        "venice", "napoli", "naples", "torino", "turin", "bologna",
        "centro storico", "centro", "near", "vicino", "zona", "quartiere",
    ],
    budgets=[
        "economico", "economica", "budget", "cheap", "lusso", "luxury",
        "premium", "costoso", "expensive",
    ],
    group_sizes=[
        "famiglia", "family", "coppia", "couple", "per due", "due persone",
        "gruppo", "group", "solo", "bambini", "kids",
    ],
    occasions=[
        "romantico", "romantic", "business", "lavoro", "anniversario",
        "anniversary", "compleanno", "birthday", "celebrazione", "celebration",
        "matrimonio", "wedding",
    ],
    months=[
        "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno", "luglio",
        "agosto", "settembre", "ottobre", "novembre", "dicembre", "january",
        "february", "march", "april", "may", "june", "july", "august",
        "september", "october", "november", "december",
    ],
)


def load_lexicon(path: Optional[Union[str, Path]] = None) -> Lexicon:
    """Load a lexicon from JSON, or return the built-in one when no path is set."""

    if not path:
        return DEFAULT_LEXICON
    source = Path(path)
    logger.info(f"Loading analyzer lexicon from {source}")
    with source.open(encoding="utf-8") as handle:
        return Lexicon.model_validate(json.load(handle))
