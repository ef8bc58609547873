import pytest

from kard.models import Deck
from kard.search import filter_decks


@pytest.fixture
def decks(spanish_deck, user_id):
    return [
        spanish_deck,
        Deck(user_id=user_id, name="French", description="Verbs"),
        Deck(user_id=user_id, name="Chemistry"),
    ]


@pytest.mark.parametrize("query", ["", "   "])
def test_blank_query_keeps_all(decks, query):
    assert filter_decks(decks, query) == decks


def test_matches_name_case_insensitively(decks):
    assert [d.name for d in filter_decks(decks, "FRENCH")] == ["French"]


def test_matches_description(decks):
    assert [d.name for d in filter_decks(decks, "verbs")] == ["French"]


def test_matches_card_text(decks):
    assert [d.name for d in filter_decks(decks, "thank")] == ["Spanish"]


def test_no_match(decks):
    assert filter_decks(decks, "geology") == []
