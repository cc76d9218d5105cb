"""Lexicon-driven query analysis.

Turns the raw user query into a ``QueryAnalysis``: which domains to search,
how confident we are about each, and the contextual terms (location, budget,
group size, occasion) the domain agents can use as filters.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence

from travel_concierge.core.config import AnalyzerThresholds
from travel_concierge.core.errors import EmptyQueryError
from travel_concierge.core.lexicon import DEFAULT_LEXICON, Lexicon
from travel_concierge.core.schemas import ConversationContext, Domain, QueryAnalysis, SearchTerms

logger = logging.getLogger(__name__)

# English months that double as common words; only the range form reads them as dates
AMBIGUOUS_MONTHS = frozenset({"may", "march"})


@lru_cache(maxsize=1024)
def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)")


def contains_term(text: str, term: str) -> bool:
    """Whole-word (or whole-phrase) containment on already lowercased text."""

    return bool(_term_pattern(term).search(text))


def first_match(text: str, terms: Iterable[str]) -> Optional[str]:
    for term in terms:
        if contains_term(text, term):
            return term
    return None


class QueryAnalyzer:
    """Score each domain against its lexicon and pick the domains to dispatch."""

    def __init__(
        self,
        lexicon: Lexicon = DEFAULT_LEXICON,
        thresholds: Optional[AnalyzerThresholds] = None,
    ) -> None:
        self.lexicon = lexicon
        self.thresholds = thresholds or AnalyzerThresholds()
        self._domain_terms: Dict[Domain, List[str]] = {
            domain: [term.lower().strip() for term in lexicon.domains[domain]]
            for domain in Domain
        }
        months = "|".join(re.escape(month) for month in lexicon.months)
        # a range needs a day or month on both ends so "from the airport to
        # the hotel" stays a transport query
        day = rf"(?:\d{{1,2}}|{months})" if months else r"\d{1,2}"
        self._date_patterns: List[re.Pattern[str]] = [
            re.compile(rf"\b(?:dal|from)\s+{day}\b.*\b(?:al|to|until)\s+{day}\b"),
        ]
        bare = "|".join(re.escape(month) for month in lexicon.months if month not in AMBIGUOUS_MONTHS)
        if bare:
            self._date_patterns.extend(
                [
                    re.compile(rf"\b\d{{1,2}}\s*(?:{bare})\b"),
                    re.compile(rf"\b(?:{bare})\s+\d{{1,2}}\b"),
                ]
            )

    def confidence_for(self, text: str, terms: Sequence[str]) -> float:
        """Normalised weighted hit count; longer terms weigh more."""

        if not terms:
            return 0.0
        hits = [term for term in terms if contains_term(text, term)]
        if not hits:
            return 0.0
        weighted = sum(len(term) / 10 for term in hits)
        return min(weighted / len(terms) + len(hits) * self.thresholds.hit_weight, 1.0)

    def has_date_range(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self._date_patterns)

    def extract_search_terms(self, text: str, history_turns: Sequence[str] = ()) -> SearchTerms:
        """Pick the first lexicon entry of each contextual list found in the query.

        A location named only in earlier user turns is used when the current
        query names none ("and restaurants?" after "hotel in Rome").
        """

        location = first_match(text, self.lexicon.locations)
        if location is None:
            for turn in reversed(history_turns):
                location = first_match(turn.lower(), self.lexicon.locations)
                if location:
                    break
        return SearchTerms(
            location=location,
            budget=first_match(text, self.lexicon.budgets),
            group_size=first_match(text, self.lexicon.group_sizes),
            occasion=first_match(text, self.lexicon.occasions),
        )

    def analyze(self, query: str, context: Optional[ConversationContext] = None) -> QueryAnalysis:
        """Classify the query and select the domains to search."""

        if not query or not query.strip():
            raise EmptyQueryError("Cannot analyse an empty query")

        text = query.lower()
        thresholds = self.thresholds

        general_confidence = self.confidence_for(text, self.lexicon.general)
        has_date_range = self.has_date_range(text)
        confidence = {
            domain: self.confidence_for(text, self._domain_terms[domain]) for domain in Domain
        }
        max_confidence = max(confidence.values())

        is_trip_planning = (
            general_confidence > thresholds.general_trip
            or has_date_range
            or (max_confidence < thresholds.low_domain and general_confidence > thresholds.general_minimum)
        )

        history_turns = context.recent_user_turns() if context else []
        search_terms = self.extract_search_terms(text, history_turns)

        if is_trip_planning:
            selected = Domain.ordered()
        else:
            # sorted() is stable, so ties keep declaration order
            selected = sorted(
                (domain for domain in Domain if confidence[domain] > thresholds.domain_selectivity),
                key=lambda domain: confidence[domain],
                reverse=True,
            )

        if not selected:
            if search_terms.location:
                logger.info(
                    f"No domain cleared the threshold but location '{search_terms.location}' "
                    "was named; searching every domain"
                )
            selected = Domain.ordered()

        is_general = (
            is_trip_planning
            or len(selected) > 2
            or (len(selected) > 1 and max_confidence < thresholds.broad_max)
        )

        analysis = QueryAnalysis(
            detected_domains=selected,
            confidence=confidence,
            is_general=is_general,
            search_terms=search_terms,
            has_date_range=has_date_range,
            general_confidence=general_confidence,
            is_trip_planning=is_trip_planning,
        )
        logger.debug(f"Query analysis: {analysis.model_dump()}")
        return analysis
