from typing import Iterable, List

from .models import Deck


def _deck_matches(deck: Deck, needle: str) -> bool:
    if needle in deck.name.lower():
        return True
    if deck.description and needle in deck.description.lower():
        return True
    return any(
        needle in card.front.lower() or needle in card.back.lower()
        for card in deck.flashcards
    )


def filter_decks(decks: Iterable[Deck], query: str) -> List[Deck]:
    """
    Case-insensitive substring search over deck names, descriptions and card
    text. A blank query keeps every deck.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(decks)
    return [deck for deck in decks if _deck_matches(deck, needle)]
