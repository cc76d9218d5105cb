"""Unit tests for the lexicon-driven query analyzer."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from travel_concierge.core.analyzer import QueryAnalyzer, contains_term
from travel_concierge.core.errors import EmptyQueryError
from travel_concierge.core.lexicon import DEFAULT_LEXICON, Lexicon, load_lexicon
from travel_concierge.core.schemas import ConversationContext, Domain, Message


@pytest.fixture
def analyzer() -> QueryAnalyzer:
    return QueryAnalyzer()


def test_lodging_only_query_selects_lodging_and_reads_terms(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("hotel economico a Roma per due persone")

    assert analysis.detected_domains == [Domain.LODGING]
    assert analysis.is_general is False
    assert analysis.has_date_range is False
    assert analysis.search_terms.location == "roma"
    assert analysis.search_terms.budget == "economico"
    assert analysis.search_terms.group_size == "per due"
    assert analysis.search_terms.occasion is None
    assert analysis.confidence[Domain.LODGING] == pytest.approx(0.37)


def test_date_range_makes_query_a_full_trip(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("organizza un viaggio a Firenze dal 10 al 15 giugno")

    assert analysis.is_general is True
    assert analysis.has_date_range is True
    assert analysis.is_trip_planning is True
    assert analysis.detected_domains == Domain.ordered()
    assert analysis.search_terms.location == "firenze"


def test_single_day_and_month_counts_as_dates(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("hotel a Roma il 12 agosto")

    assert analysis.has_date_range is True
    assert analysis.detected_domains == Domain.ordered()


def test_route_phrasing_is_not_a_date_range(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("transfer from the airport to the hotel")

    assert analysis.has_date_range is False
    assert analysis.primary_domain is Domain.TRANSPORT
    assert Domain.LODGING in analysis.detected_domains


def test_month_names_that_are_common_words_are_not_dates(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("book a room in Rome, may 2 guests share it")

    assert analysis.has_date_range is False
    assert analysis.is_general is False
    assert analysis.detected_domains == [Domain.LODGING]
    assert analyzer.has_date_range("from may 2 to may 6")


def test_prepositions_do_not_make_a_trip(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("hotel vicino al Colosseo")

    assert analysis.general_confidence == 0.0
    assert analysis.is_trip_planning is False
    assert analysis.detected_domains == [Domain.LODGING]


def test_several_lodging_terms_stay_lodging_only(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("cerco una camera in un albergo con suite")

    assert analysis.detected_domains == [Domain.LODGING]
    assert analysis.general_confidence == 0.0


def test_short_markers_only_match_whole_words(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("ristorante con carbonara")

    assert analysis.confidence[Domain.TRANSPORT] == 0.0
    assert analysis.detected_domains == [Domain.DINING]
    assert contains_term("pick up at nine", "pick up")
    assert not contains_term("albergo", "al")


def test_two_domains_with_a_strong_leader_are_not_general(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("camera in hotel economico a Roma e cena")

    assert analysis.detected_domains == [Domain.LODGING, Domain.DINING]
    assert analysis.is_general is False


def test_planning_words_without_domain_terms_select_every_domain(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("una vacanza rilassante")

    assert analysis.is_trip_planning is True
    assert analysis.detected_domains == Domain.ordered()


def test_no_recognised_terms_still_dispatches_everything(analyzer: QueryAnalyzer) -> None:
    analysis = analyzer.analyze("ciao!")

    assert analysis.detected_domains == Domain.ordered()
    assert analysis.is_general is True
    assert analysis.is_trip_planning is False
    assert analysis.search_terms.location is None


def test_location_falls_back_to_recent_user_turns(analyzer: QueryAnalyzer) -> None:
    context = ConversationContext(
        query="e un ristorante tipico?",
        history=(
            Message(role="user", content="cerco un hotel a Milano"),
            Message(role="assistant", content="Ecco 3 hotel a Roma"),
        ),
    )

    analysis = analyzer.analyze(context.query, context)

    assert analysis.detected_domains == [Domain.DINING]
    assert analysis.search_terms.location == "milano"


def test_ties_keep_declaration_order() -> None:
    lexicon = Lexicon(
        domains={
            Domain.LODGING: ["aaaa"],
            Domain.DINING: ["bbbb"],
            Domain.ACTIVITY: ["cccc"],
            Domain.TRANSPORT: ["dddd"],
        },
        general=["zzzz"],
    )

    analysis = QueryAnalyzer(lexicon).analyze("dddd bbbb")

    assert analysis.detected_domains == [Domain.DINING, Domain.TRANSPORT]


def test_confidence_weighs_term_length_and_caps_at_one(analyzer: QueryAnalyzer) -> None:
    assert analyzer.confidence_for("hotel", ["hotel", "room"]) == pytest.approx(0.4)
    assert analyzer.confidence_for("accommodation", ["accommodation"]) == 1.0
    assert analyzer.confidence_for("nothing here", ["hotel"]) == 0.0
    assert analyzer.confidence_for("hotel", []) == 0.0


@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
def test_empty_query_is_rejected(analyzer: QueryAnalyzer, query: str) -> None:
    with pytest.raises(EmptyQueryError):
        analyzer.analyze(query)


def test_empty_query_error_is_a_value_error(analyzer: QueryAnalyzer) -> None:
    with pytest.raises(ValueError):
        analyzer.analyze("")


def test_load_lexicon_reads_json(tmp_path) -> None:
    payload = DEFAULT_LEXICON.model_dump(mode="json")
    payload["locations"] = ["Palermo"]
    path = tmp_path / "lexicon.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    lexicon = load_lexicon(path)

    assert lexicon.locations == ["palermo"]
    assert QueryAnalyzer(lexicon).analyze("hotel a Palermo").search_terms.location == "palermo"


def test_load_lexicon_defaults_without_path() -> None:
    assert load_lexicon(None) is DEFAULT_LEXICON


def test_lexicon_requires_every_domain() -> None:
    with pytest.raises(ValidationError):
        Lexicon(domains={Domain.LODGING: ["hotel"]}, general=[])
